"""
Shared fixtures: a temporary SQLite dataset, HTML page builders and a fake
job catalog site served through an in-memory ``fetch_html``.
"""

import pytest
from omegaconf import OmegaConf

from harvest.contexts.storage import DatabaseConfig, RecordSink
from harvest.utils import get_query_param

SITE = "https://www.profesia.sk"

RELATED_LIST_PAGE = """
<html><body>
<ul class="nav-tabs"><li><a>Slovensko</a></li><li><a>Zahraničie</a></li></ul>
<div class="col">
  <h1>Zoznam lokalít</h1>
  <div class="card">
    <a href="/praca/bratislavsky-kraj/"><h2>Bratislavský kraj</h2> <span>1 234</span></a>
    <ul>
      <li><a href="/praca/bratislava/">Bratislava</a> <span>1 100</span></li>
      <li><a href="/praca/senec/">Senec</a> <span>34</span></li>
    </ul>
    <a href="#top">Hore</a>
  </div>
</div>
</body></html>
"""

PARTNERS_PAGE = """
<html><body>
<ul class="nav-tabs"><li><a>Mediálni partneri</a></li><li><a>Vzdelávanie</a></li></ul>
<div class="tab-content">
  <div class="card">
    <div class="row">
      <div><img src="/logos/media.png"></div>
      <div><a href="https://media.example.sk">Media SK</a> Najčítanejší portál</div>
    </div>
  </div>
  <div class="card">
    <div class="row">
      <div><img src="/logos/school.png"></div>
      <div><a href="https://school.example.sk">School</a> Kurzy a školenia</div>
    </div>
  </div>
</div>
</body></html>
"""


def listing_row(offer_num: int, added: bool = True) -> str:
    change = "pridané" if added else "aktualizované"
    return f"""
    <div class="list-row">
      <h2><a href="/praca/acme-{offer_num}/O{1000 + offer_num}">Python developer {offer_num}</a></h2>
      <span class="employer">ACME {offer_num} s.r.o.</span>
      <a class="offer-company-logo-link" href="/praca/acme-{offer_num}/C{500 + offer_num}"><img src="/logos/{offer_num}.png"></a>
      <span class="job-location">Bratislava</span>
      <div class="label-group">
        <a data-dimension7="Salary label">Od 1 500 EUR/mesiac</a>
        <a data-dimension7="Other">Práca z domu</a>
      </div>
      <div class="list-footer"><span class="info">{change} <strong>pred 2 dňami</strong></span></div>
    </div>
    """


def listing_page(first: int, count: int, total: int, body_class: str = "listing") -> str:
    rows = "".join(listing_row(n) for n in range(first, first + count))
    counter = f'<div class="offer-counter">{first} - {first + count - 1} z {total}</div>' if count else ""
    return f"""
    <html><body class="{body_class}">
      {counter}
      <div class="list-row native-agent"><h2><a href="/ad">Ad</a></h2></div>
      {rows}
    </body></html>
    """


def detail_page(offer_num: int) -> str:
    return f"""
    <html><body>
    <div id="content"><div class="container">
      <span class="label">Nové</span>
      <div id="detail"><div class="card-content">
        <h1 itemprop="title">Python developer {offer_num}</h1>
        <span itemprop="hiringOrganization">ACME {offer_num} s.r.o.</span>
        <a class="easy-design-btn-offer-list" href="/praca/acme-{offer_num}/C{500 + offer_num}">Ponuky</a>
        <span itemprop="employmentType">plný úväzok, živnosť</span>
        <span itemprop="jobLocation">Bratislava</span>
        <span itemprop="datePosted">1.2.2024</span>
        <div class="salary-range">35 000 - 45 000 EUR/rok</div>
        <div class="details-section"><span class="tel">+421 900 000 000</span></div>
        <div class="job-info">
          <h3>Náplň práce, právomoci a zodpovednosti</h3>
          <div>Writing Python <span class="text-gray">(hidden)</span></div>
          <h3>Výhody</h3>
          <div>Home office</div>
        </div>
        <div class="company-info">
          <h3>Kontakt</h3>
          <div>hr@acme.sk</div>
        </div>
        <div class="overall-info"><div class="hidden-xs">
          <strong>Lokality:</strong>
          <a href="/praca/bratislava/">Bratislava</a>
          <strong>Pracovná pozícia:</strong>
          <a href="/praca/programator/">Programátor</a>
        </div></div>
      </div></div>
    </div></div>
    </body></html>
    """


class FakeSite:
    """
    In-memory job catalog: ``total`` offers, 20 per listing page.

    Records every fetched URL in ``fetched``.
    """

    def __init__(self, total: int, page_size: int = 20):
        self.total = total
        self.page_size = page_size
        self.fetched = []

    def listing_fetches(self):
        return [url for url in self.fetched if "/O1" not in url]

    def page(self, url: str) -> str:
        if "/O" in url and "/praca/acme-" in url:
            offer_num = int(url.rsplit("/O", 1)[1]) - 1000
            return detail_page(offer_num)

        page_num = int(get_query_param(url, "page_num") or 1)
        first = (page_num - 1) * self.page_size + 1
        count = max(min(self.page_size, self.total - first + 1), 0)
        return listing_page(first, count, self.total)

    async def fetch_html(self, url: str) -> str:
        self.fetched.append(url)
        return self.page(url)


@pytest.fixture
def sink(tmp_path):
    config = DatabaseConfig(url=f"sqlite:///{tmp_path / 'records.db'}", table="records")
    return RecordSink(config)


@pytest.fixture
def reporting_sink(sink):
    return RecordSink(sink.config.for_table("errors"), engine=sink.engine)


@pytest.fixture
def crawl_config():
    """Crawl input with fast retries and no pauses."""
    return OmegaConf.create(
        {
            "start_urls": [f"{SITE}/praca/"],
            "dataset_type": None,
            "filters": {},
            "detailed": False,
            "count_only": False,
            "max_entries": None,
            "crawler": {
                "max_concurrency": 3,
                "max_request_retries": 1,
                "retry_backoff": 0,
                "request_handler_timeout_secs": 10,
                "listing_handler_timeout_secs": 30,
                "max_requests_per_crawl": None,
                "detail_request_pause": 0,
            },
            "storage": {"dataset": "records", "reporting_dataset": "errors"},
        }
    )
