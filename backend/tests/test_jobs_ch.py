from types import SimpleNamespace
from unittest.mock import MagicMock

import requests

from jobharvest.services.scraper import CrawlRequest, RequestLabel, RequestUserData
from jobharvest.services.scraper.targets import JobsChTarget, default_registry

SEARCH_HTML = """
<div aria-label="Job list">
  <a data-cy="job-link" href="/en/vacancies/detail/aaa-111/?source=search">Python developer</a>
  <a data-cy="job-link" href="/en/vacancies/detail/bbb-222/">Data engineer</a>
  <a data-cy="job-link" href="/en/vacancies/detail/aaa-111/?source=search">Python developer</a>
  <a data-cy="job-link" href="/en/companies/acme/">Acme</a>
  <a href="/en/vacancies/detail/ccc-333/">Not a job link</a>
</div>
"""

DETAIL_HTML = """
<main>
  <h1 data-cy="vacancy-title">Senior Python Developer</h1>
  <div data-cy="vacancy-logo"><span><svg></svg></span><span>Acme Logo AG</span></div>
  <a data-cy="company-link"><span>Acme AG</span></a>
  <div data-cy="vacancy-info">
    <ul>
      <li><span><svg></svg></span><span>Workload:</span><span>80-100%</span></li>
      <li><span>Contract type:</span><span>Unlimited employment</span></li>
      <li><span>Place of work:</span></li>
    </ul>
  </div>
  <div data-cy="vacancy-description">
    <div><a>Apply now</a><p><span>Quick apply</span></p></div>
    <div>
      <p><span>We build crawlers for the Swiss market.</span></p>
      <p><strong><span>Your tasks</span></strong></p>
      <ul><li><span>Design scrapers</span></li><li><span>Review code</span></li></ul>
      <p><strong><span>Your profile</span></strong></p>
      <p><span>Python experience</span></p>
      <p><strong><span>Empty heading</span></strong></p>
    </div>
  </div>
</main>
"""


class FakeContext:
    def __init__(self):
        self.enqueued = []

    def extraction_request(self, url, unique_key=None):
        return CrawlRequest(url=url, user_data={"label": RequestLabel.EXTRACTION_REQUEST.value}, unique_key=unique_key or url)

    def enqueue(self, requests_):
        keys = [request.unique_key for request in requests_ if request.unique_key not in self.enqueued]
        self.enqueued.extend(keys)
        return keys


def _response(url, text=""):
    return SimpleNamespace(url=url, text=text, raise_for_status=lambda: None)


def _user_data(label, max_pages=1):
    return RequestUserData(label=label, target_id="t1", target="jobs-ch", keywords=["python", "zurich"], max_pages=max_pages)


def test_search_url_joins_keywords():
    url = JobsChTarget(session=MagicMock()).build_search_url(["python", "zurich"], 2)
    assert url == "https://www.jobs.ch/en/vacancies/?term=python+zurich&page=2"


def test_is_on_page_matches_exact_page():
    assert JobsChTarget.is_on_page("https://www.jobs.ch/en/vacancies/?term=x&page=1", 1)
    assert not JobsChTarget.is_on_page("https://www.jobs.ch/en/vacancies/?term=x&page=10", 1)
    assert not JobsChTarget.is_on_page("https://www.jobs.ch/en/vacancies/?term=x", 1)


def test_extract_vacancy_links_keeps_detail_pages_once():
    links = JobsChTarget(session=MagicMock()).extract_vacancy_links(SEARCH_HTML)

    assert links == [
        "https://www.jobs.ch/en/vacancies/detail/aaa-111/?source=search",
        "https://www.jobs.ch/en/vacancies/detail/bbb-222/",
    ]


def test_pagination_stops_when_redirected_to_previous_page():
    session = MagicMock()
    session.get.side_effect = [
        _response("https://www.jobs.ch/en/vacancies/?term=python+zurich&page=1", SEARCH_HTML),
        _response("https://www.jobs.ch/en/vacancies/?term=python+zurich&page=1", SEARCH_HTML),
    ]
    target = JobsChTarget(session=session, timeout=5)
    context = FakeContext()

    outcome = target.process(CrawlRequest(url="https://www.placeholder-url.com"), _user_data(RequestLabel.TARGET_REQUEST, max_pages=3), context)

    assert outcome.error is None
    assert outcome.unique_keys == context.enqueued
    assert len(outcome.unique_keys) == 2
    assert session.get.call_count == 2
    session.get.assert_called_with("https://www.jobs.ch/en/vacancies/?term=python+zurich&page=2", timeout=5)


def test_extraction_request_returns_structured_record():
    url = "https://www.jobs.ch/en/vacancies/detail/aaa-111/"
    session = MagicMock()
    session.get.return_value = _response(url, DETAIL_HTML)

    outcome = JobsChTarget(session=session).process(
        CrawlRequest(url=url), _user_data(RequestLabel.EXTRACTION_REQUEST), FakeContext()
    )

    record = outcome.record
    assert record["url"] == url
    assert record["title"] == "Senior Python Developer"
    assert record["information"] == [
        {"label": "Workload", "value": "80-100%"},
        {"label": "Contract type", "value": "Unlimited employment"},
        {"label": "Company", "value": "Acme AG"},
    ]
    assert record["description"] == [
        {"title": None, "blocks": ["We build crawlers for the Swiss market."]},
        {"title": "Your tasks", "blocks": ["Design scrapers", "Review code"]},
        {"title": "Your profile", "blocks": ["Python experience"]},
    ]


def test_company_falls_back_to_logo_text():
    html = '<div data-cy="vacancy-logo"><span><svg></svg></span><span>Logo GmbH</span></div>'
    record = JobsChTarget(session=MagicMock()).parse_vacancy("https://www.jobs.ch/x", html)

    assert record["information"] == [{"label": "Company", "value": "Logo GmbH"}]
    assert record["title"] == ""
    assert record["description"] == []


def test_network_error_is_returned_not_raised():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("connection reset")

    outcome = JobsChTarget(session=session).process(
        CrawlRequest(url="https://www.jobs.ch/en/vacancies/detail/aaa-111/"),
        _user_data(RequestLabel.EXTRACTION_REQUEST),
        FakeContext(),
    )

    assert outcome.record is None
    assert "connection reset" in outcome.error


def test_default_registry_resolves_jobs_ch():
    assert isinstance(default_registry(timeout=1).resolve("Jobs CH"), JobsChTarget)
