"""
JobsChTarget - Extraction des offres d'emploi de jobs.ch.

Deux phases, selon le label de la requête:
1. target-request: parcourt les pages de recherche (?term=...&page=n) et met
   en file une extraction-request par offre trouvée
2. extraction-request: charge la page de détail et extrait titre, entreprise,
   informations clés et description structurée
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urljoin, urlparse

import requests
from bs4 import BeautifulSoup, Tag

from jobharvest.core.settings import settings
from jobharvest.services.scraper.crawl_request import RequestLabel
from .base import ProcessResult, Target

logger = logging.getLogger(__name__)

BASE_URL = "https://www.jobs.ch/en/vacancies/"
DETAIL_URL_PREFIX = "https://www.jobs.ch/en/vacancies/detail/"

SELECTORS = {
    'job_link': '[data-cy="job-link"]',
    'title': '[data-cy="vacancy-title"]',
    'description': '[data-cy="vacancy-description"]',
    'company_link': '[data-cy="company-link"]',
    'vacancy_logo': '[data-cy="vacancy-logo"]',
    'info': '[data-cy="vacancy-info"]',
}


class JobsChTarget(Target):
    """Target jobs.ch (requests + BeautifulSoup)."""

    name = "jobs-ch"

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.headers = {
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Accept-Language': 'en-US,en;q=0.9,de;q=0.8,fr;q=0.7'
        }
        self.session = session or requests.Session()
        self.session.headers.update(self.headers)
        self.timeout = timeout or settings.CRAWL_REQUEST_TIMEOUT

    # ------------------------------------------------------------------
    # Target contract
    # ------------------------------------------------------------------

    def process(self, request, user_data, context) -> ProcessResult:
        try:
            if user_data.label == RequestLabel.EXTRACTION_REQUEST:
                return ProcessResult.extracted(self.extract_vacancy(request.url))
            return ProcessResult.enqueued(self.paginate(user_data.keywords, user_data.max_pages, context))
        except requests.RequestException as e:
            logger.warning(f"⚠️ jobs.ch request failed for {request.url}: {e}")
            return ProcessResult.failed(f"Request to jobs.ch failed: {e}")

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def build_search_url(self, keywords: List[str], page: int) -> str:
        return f"{BASE_URL}?{urlencode({'term': ' '.join(keywords), 'page': page})}"

    def paginate(self, keywords: List[str], max_pages: int, context) -> List[str]:
        """Enqueues one extraction request per vacancy; returns the accepted keys."""
        unique_keys: List[str] = []

        for page in range(1, max_pages + 1):
            final_url, html = self._fetch(self.build_search_url(keywords, page))

            # jobs.ch redirige vers la dernière page existante
            if not self.is_on_page(final_url, page):
                logger.info(f"No page {page} for keywords {keywords}, stopping pagination")
                break

            links = self.extract_vacancy_links(html)
            logger.debug(f"Page {page}: {len(links)} vacancies")
            unique_keys.extend(context.enqueue([context.extraction_request(url) for url in links]))

        return unique_keys

    @staticmethod
    def is_on_page(url: str, page: int) -> bool:
        return parse_qs(urlparse(url).query).get('page') == [str(page)]

    def extract_vacancy_links(self, html: str) -> List[str]:
        soup = BeautifulSoup(html, 'html.parser')
        links: List[str] = []
        for anchor in soup.select(SELECTORS['job_link']):
            href = anchor.get('href')
            if not href:
                continue
            url = urljoin(BASE_URL, href)
            if url.startswith(DETAIL_URL_PREFIX) and url not in links:
                links.append(url)
        return links

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract_vacancy(self, url: str) -> Dict[str, Any]:
        _, html = self._fetch(url)
        return self.parse_vacancy(url, html)

    def parse_vacancy(self, url: str, html: str) -> Dict[str, Any]:
        soup = BeautifulSoup(html, 'html.parser')

        title_elem = soup.select_one(SELECTORS['title'])
        information = self.parse_information(soup)
        company = self.parse_company(soup)
        if company:
            information.append({'label': 'Company', 'value': company})

        return {
            'url': url,
            'title': title_elem.get_text(strip=True) if title_elem else '',
            'information': information,
            'description': self.parse_description(soup),
        }

    def parse_description(self, soup: BeautifulSoup) -> List[Dict[str, Any]]:
        """
        Découpe la description en sections {title, blocks}.

        Un <p><strong><span> ouvre une section; les <span> de paragraphes
        et de listes remplissent la section courante. Le premier enfant du
        conteneur (encart "postuler") est ignoré.
        """
        container = soup.select_one(SELECTORS['description'])
        if container is None:
            return []

        sections: List[Dict[str, Any]] = []
        current: Optional[Dict[str, Any]] = None

        for child in container.find_all(recursive=False)[1:]:
            for span in child.select('p > strong > span, p > span, ul > li > span'):
                text = span.get_text(strip=True)
                if not text:
                    continue

                if _is_heading(span):
                    if current and current['blocks']:
                        sections.append(current)
                    current = {'title': text, 'blocks': []}
                    continue

                if current is None:
                    current = {'title': None, 'blocks': []}
                current['blocks'].append(text)

        if current and current['blocks']:
            sections.append(current)

        return sections

    def parse_information(self, soup: BeautifulSoup) -> List[Dict[str, str]]:
        container = soup.select_one(SELECTORS['info'])
        if container is None:
            return []

        information = []
        for item in container.select('ul > li'):
            texts = [span.get_text(strip=True) for span in item.find_all('span') if span.find('svg') is None]
            texts = [text for text in texts if text]
            if len(texts) >= 2:
                information.append({'label': texts[0].rstrip(':'), 'value': texts[1]})
        return information

    def parse_company(self, soup: BeautifulSoup) -> Optional[str]:
        company_link = soup.select_one(SELECTORS['company_link'])
        if company_link:
            text = company_link.get_text(strip=True)
            if text:
                return text

        logo = soup.select_one(SELECTORS['vacancy_logo'])
        if logo:
            for span in logo.find_all('span'):
                if span.find('svg') is None and span.get_text(strip=True):
                    return span.get_text(strip=True)
        return None

    def _fetch(self, url: str) -> Tuple[str, str]:
        """GET with redirects followed; returns (final url, html)."""
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.url, response.text


def _is_heading(span: Tag) -> bool:
    strong = span.find_parent('strong')
    return strong is not None and strong.parent is not None and strong.parent.name == 'p'
