"""In-memory stand-ins for the parts of gspread the store touches.

Every method that would be a Sheets API request is logged in ``FakeSpreadsheet.calls``.
"""
import re
from datetime import date

import gspread
import pytest

from weightbot.storage import CONFIG_COLUMNS, USER_COLUMNS, SheetStore

A1_RE = re.compile(r"^(?P<col>[A-Z])(?P<row>\d*)(?::(?P<end_col>[A-Z])(?P<end_row>\d*))?$")


class FakeWorksheet:
    def __init__(self, title, rows=None):
        self.title = title
        self.rows = [list(r) for r in (rows or [])]
        self.writes = 0
        self.spreadsheet = None

    def _request(self, method):
        if self.spreadsheet is not None:
            self.spreadsheet.request(f"{self.title}.{method}")

    def get_all_values(self):
        self._request("get_all_values")
        return [list(r) for r in self.rows]

    def row_values(self, n):
        self._request("row_values")
        return list(self.rows[n - 1]) if n <= len(self.rows) else []

    def append_row(self, values, value_input_option=None):
        self._request("append_row")
        self.writes += 1
        self.rows.append([str(v) for v in values])

    def _write_range(self, range_name, values):
        m = A1_RE.match(range_name)
        col = ord(m.group("col")) - ord("A")
        start = int(m.group("row"))
        for i, vals in enumerate(values):
            while len(self.rows) < start + i:
                self.rows.append([])
            row = self.rows[start + i - 1]
            while len(row) < col + len(vals):
                row.append("")
            for j, v in enumerate(vals):
                row[col + j] = str(v)

    def update(self, range_name=None, values=None, value_input_option=None):
        self._request("update")
        self.writes += 1
        self._write_range(range_name, values)

    def batch_update(self, data, value_input_option=None):
        self._request("batch_update")
        self.writes += 1
        for item in data:
            self._write_range(item["range"], item["values"])

    def batch_clear(self, ranges):
        self._request("batch_clear")
        self.writes += 1
        for rng in ranges:
            start = int(A1_RE.match(rng).group("row"))
            self.rows = self.rows[: start - 1]


class FakeSpreadsheet:
    def __init__(self, worksheets=None):
        self.worksheets = {}
        self.calls = []
        self.broken = False
        for ws in worksheets or []:
            self._attach(ws)

    def _attach(self, ws):
        ws.spreadsheet = self
        self.worksheets[ws.title] = ws
        return ws

    def request(self, name):
        if self.broken:
            raise ConnectionError("sheets API unreachable")
        self.calls.append(name)

    def worksheet(self, title):
        self.request(f"worksheet:{title}")
        try:
            return self.worksheets[title]
        except KeyError:
            raise gspread.WorksheetNotFound(title)

    def add_worksheet(self, title, rows, cols):
        self.request(f"add_worksheet:{title}")
        return self._attach(FakeWorksheet(title))


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet([
        FakeWorksheet("Users", [USER_COLUMNS]),
        FakeWorksheet("Config", [CONFIG_COLUMNS]),
    ])


@pytest.fixture
def store(spreadsheet):
    return SheetStore(spreadsheet)


@pytest.fixture
def users_ws(spreadsheet):
    return spreadsheet.worksheets["Users"]


@pytest.fixture
def config_ws(spreadsheet):
    return spreadsheet.worksheets["Config"]


@pytest.fixture
def today():
    return date(2024, 1, 2)
