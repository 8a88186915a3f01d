from __future__ import annotations

import argparse
import csv
import io
from pathlib import Path
from typing import Dict, List

import requests
from bs4 import BeautifulSoup

from examplanner.config import ExamPlannerConfig, get_config
from examplanner.errors import ScrapeError
from examplanner.log import get_logger, setup_logging
from examplanner.model import SourceKind
from examplanner.parse import CATALOG_FILES

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def html_table_to_csv(html: str) -> str:
    """
    Convert the first <table> of an exam schedule page into comma-delimited text.

    Header cells (<th>) are kept as the first line. Rows without cells are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table")
    if table is None:
        raise ScrapeError("No <table> found in catalog page")

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")

    for tr in table.find_all("tr"):
        cells = [c.get_text(" ", strip=True) for c in tr.find_all(["th", "td"])]
        if not cells:
            continue
        writer.writerow(cells)

    return buf.getvalue()


def fetch_catalog(url: str, timeout: float = 30) -> str:
    """
    Download one raw catalog. HTML pages are converted to CSV text.
    """
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise ScrapeError(f"Could not fetch {url}: {e}") from e

    content_type = resp.headers.get("Content-Type", "")
    if "html" in content_type.lower() or resp.text.lstrip().lower().startswith(("<!doctype", "<html")):
        return html_table_to_csv(resp.text)
    return resp.text


def scrape_catalogs(config: ExamPlannerConfig | None = None, refresh: bool = False) -> Dict[SourceKind, Path]:
    """
    Download the configured catalogs into download_dir and return the written paths.

    The bundled samples in raw_dir are never overwritten.
    """
    cfg = config or get_config()
    out_dir = Path(cfg.download_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    urls = {
        SourceKind.CURRENT: cfg.current_catalog_url,
        SourceKind.HISTORICAL: cfg.historical_catalog_url,
    }

    written: Dict[SourceKind, Path] = {}
    for kind, url in urls.items():
        out_file = out_dir / CATALOG_FILES[kind]

        if not url:
            log.info("catalog_url_not_configured", kind=kind.value)
            continue

        if out_file.exists() and not refresh:
            print(f"SKIP  {kind.value}")
            continue

        print(f"FETCH {kind.value}")
        text = fetch_catalog(url, timeout=cfg.request_timeout)
        out_file.write_text(text, encoding="utf-8")
        written[kind] = out_file

    print("Download finished.")
    return written


# ---------------------------------------------------------------------------
# CLI entry
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="examplanner.scrape", description="Download raw exam catalogs")
    p.add_argument("--refresh", action="store_true", help="Re-fetch and overwrite existing catalog files")
    return p


def main(argv: List[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    cfg = get_config()
    setup_logging(cfg.log_json, cfg.log_level)
    scrape_catalogs(cfg, refresh=args.refresh)


if __name__ == "__main__":
    main()
