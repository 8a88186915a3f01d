import contextlib
import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

from examplanner.config import PACKAGE_DIR, ExamPlannerConfig
from examplanner.errors import ScrapeError
from examplanner.model import SourceKind
from examplanner.parse import catalog_dir, parse_catalog
from examplanner.scrape import fetch_catalog, html_table_to_csv, scrape_catalogs

PAGE = """
<html><body>
<h1>Final exam schedule</h1>
<table>
  <tr><th>Course</th><th>Section</th><th>Year</th><th>Exam Type</th><th>Start Time</th>
      <th>End Time</th><th>Building</th><th>Room</th><th>Course Title</th></tr>
  <tr><td>COMP 202</td><td>001</td><td>W2026</td><td>Final</td><td>2026-04-14 09:00</td>
      <td>2026-04-14 12:00</td><td>Leacock</td><td>132</td><td>Foundations, Part 1</td></tr>
  <tr><td></td><td></td><td></td><td></td><td></td><td></td><td>Leacock</td><td>232</td><td></td></tr>
</table>
</body></html>
"""


class TestHtmlTable(unittest.TestCase):
    def test_table_converts_to_parseable_csv(self) -> None:
        text = html_table_to_csv(PAGE)
        exams = parse_catalog(text, SourceKind.CURRENT)

        self.assertEqual(len(exams), 1)
        self.assertEqual(exams[0].room, "132, 232")
        self.assertEqual(exams[0].course_title, "Foundations, Part 1")

    def test_page_without_table_raises(self) -> None:
        with self.assertRaises(ScrapeError):
            html_table_to_csv("<html><body>maintenance</body></html>")


class TestFetchCatalog(unittest.TestCase):
    @mock.patch("examplanner.scrape.requests.get")
    def test_csv_is_returned_as_is(self, get: mock.Mock) -> None:
        get.return_value = mock.Mock(text="COMP202,1,W2026,Final,09:00\n", headers={"Content-Type": "text/csv"})
        self.assertEqual(fetch_catalog("https://example.com/exams.csv"), "COMP202,1,W2026,Final,09:00\n")

    @mock.patch("examplanner.scrape.requests.get")
    def test_html_page_is_converted(self, get: mock.Mock) -> None:
        get.return_value = mock.Mock(text=PAGE, headers={"Content-Type": "text/html; charset=utf-8"})
        self.assertTrue(fetch_catalog("https://example.com/exams").startswith("Course,Section"))

    @mock.patch("examplanner.scrape.requests.get")
    def test_network_error_raises_scrape_error(self, get: mock.Mock) -> None:
        get.side_effect = requests.ConnectionError("offline")
        with self.assertRaises(ScrapeError):
            fetch_catalog("https://example.com/exams.csv")


class TestScrapeCatalogs(unittest.TestCase):
    @mock.patch("examplanner.scrape.fetch_catalog")
    def test_downloads_go_to_state_dir_not_bundled_samples(self, fetch: mock.Mock) -> None:
        fetch.return_value = "COMP202,1,W2026,Final,09:00\n"
        raw_dir = PACKAGE_DIR / "data" / "raw"

        with tempfile.TemporaryDirectory() as d:
            cfg = ExamPlannerConfig(
                raw_dir=raw_dir,
                state_dir=Path(d),
                current_catalog_url="https://example.com/current.csv",
            )
            self.assertEqual(catalog_dir(cfg.download_dir, cfg.raw_dir), raw_dir)

            out = io.StringIO()
            with contextlib.redirect_stdout(out):
                written = scrape_catalogs(cfg)

            self.assertIn("FETCH current", out.getvalue())
            self.assertNotIn("SKIP", out.getvalue())
            self.assertEqual(written[SourceKind.CURRENT], cfg.download_dir / "current.csv")
            self.assertEqual(catalog_dir(cfg.download_dir, cfg.raw_dir), cfg.download_dir)

            # a second run keeps the download unless refresh is asked for
            out = io.StringIO()
            with contextlib.redirect_stdout(out):
                scrape_catalogs(cfg)
            self.assertIn("SKIP  current", out.getvalue())
        fetch.assert_called_once()


if __name__ == "__main__":
    unittest.main()
