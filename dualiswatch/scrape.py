from __future__ import annotations

import re
import shutil
import time
from pathlib import Path
from typing import List, Optional

import requests

from dualiswatch.config import Settings
from dualiswatch.errors import LoginFailed
from dualiswatch.parse import DETAILS_DIR, OVERVIEW_FILE, parse_detail_links, parse_semester_options


# ---------------------------------------------------------------------------
# CampusNet URLs
# ---------------------------------------------------------------------------

DLL_PATH = "/scripts/mgrqispi.dll"

# Menu numbers of the result pages in the "classic" Dualis menu
OVERVIEW_MENU = "000310"
COURSE_RESULTS_MENU = "000307"

SESSION_ARG_RE = re.compile(r"ARGUMENTS=-N(\d+)")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class DualisSession:
    """
    Logged-in Dualis session.

    Dualis does not use cookies for the session alone: every page URL carries
    the session number as its first "-N" argument.
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = requests.Session()
        self.session_id: Optional[str] = None

    @property
    def dll_url(self) -> str:
        return self.base_url + DLL_PATH

    def login(self, email: str, password: str) -> str:
        """
        Post the login form and remember the session number.
        """
        form = {
            "usrname": email,
            "pass": password,
            "APPNAME": "CampusNet",
            "PRGNAME": "LOGINCHECK",
            "ARGUMENTS": "clino,usrname,pass,menuno,menu_type,browser,platform",
            "clino": "000000000000001",
            "menuno": "000324",
            "menu_type": "classic",
            "browser": "",
            "platform": "",
        }
        resp = self.http.post(self.dll_url, data=form, timeout=self.timeout)
        resp.raise_for_status()

        # On success the login page answers with a refresh to the start page
        refresh = resp.headers.get("REFRESH", "")
        match = SESSION_ARG_RE.search(refresh)
        if not match:
            raise LoginFailed("Dualis login failed (no session in response). Check DUALIS_EMAIL / DUALIS_PASSWORD.")

        self.session_id = match.group(1)
        return self.session_id

    def _page_url(self, prgname: str, *arguments: str) -> str:
        if self.session_id is None:
            raise LoginFailed("Not logged in.")
        args = ",".join([f"-N{self.session_id}", *[f"-N{a}" for a in arguments]])
        return f"{self.dll_url}?APPNAME=CampusNet&PRGNAME={prgname}&ARGUMENTS={args}"

    def fetch(self, url: str) -> str:
        resp = self.http.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.text

    def fetch_overview(self) -> str:
        url = self._page_url(
            "STUDENT_RESULT",
            OVERVIEW_MENU,
            "0",
            "000000000000000",
            "000000000000000",
            "000000000000000",
            "0",
            "000000000000000",
        )
        return self.fetch(url)

    def fetch_semester_page(self, semester: str = "") -> str:
        # Without a semester Dualis shows the current one plus the drop-down
        if semester:
            url = self._page_url("COURSERESULTS", COURSE_RESULTS_MENU, semester)
        else:
            url = self._page_url("COURSERESULTS", COURSE_RESULTS_MENU)
        return self.fetch(url)


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def _collect_detail_links(session: DualisSession, sleep_seconds: float) -> List[str]:
    """
    Walk all semesters and return the detail page URLs in visit order.
    """
    start_page = session.fetch_semester_page()
    semesters = parse_semester_options(start_page)
    print(f"Found {len(semesters)} semesters")

    links: List[str] = []
    for value, label in semesters:
        print(f"FETCH semester {label}")
        page = session.fetch_semester_page(value)
        for link in parse_detail_links(page, session.base_url):
            if link not in links:
                links.append(link)
        time.sleep(sleep_seconds)

    return links


def scrape(
    settings: Settings,
    mode: str,
    raw_dir: Path,
    sleep_seconds: float = 0.2,
) -> int:
    """
    Log in and cache the result pages as HTML. Returns the number of pages written.
    """
    raw_dir = Path(raw_dir)
    raw_dir.mkdir(parents=True, exist_ok=True)

    session = DualisSession(settings.base_url, timeout=settings.timeout)
    session.login(settings.email, settings.password)
    print("Logged in.")

    if mode == "overview":
        print("FETCH overview")
        (raw_dir / OVERVIEW_FILE).write_text(session.fetch_overview(), encoding="utf-8")
        return 1

    links = _collect_detail_links(session, sleep_seconds)
    print(f"Found {len(links)} course pages")

    # Old pages would mix with the new visit order
    details_dir = raw_dir / DETAILS_DIR
    if details_dir.exists():
        shutil.rmtree(details_dir)
    details_dir.mkdir(parents=True)

    for i, url in enumerate(links, start=1):
        print(f"FETCH course page {i}/{len(links)}")
        (details_dir / f"{i:04d}.html").write_text(session.fetch(url), encoding="utf-8")
        time.sleep(sleep_seconds)

    print("Scraping finished.")
    return len(links)
