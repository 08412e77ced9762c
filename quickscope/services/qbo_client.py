"""QuickBooks Online data API — company info and financial reports.

Bearer-authenticated GETs against /v3/company/{realmId}/... with a bounded
timeout. Any transport error or non-2xx status becomes UpstreamFailed;
a 401 from the data API becomes RefreshFailed so the caller can ask the
user to reconnect.

extract_financial_metrics() turns the nested Rows structure of the
ProfitAndLoss and BalanceSheet reports into flat numbers.
"""

import logging

import requests

from quickscope.errors import RefreshFailed, UpstreamFailed

logger = logging.getLogger(__name__)

API_BASE_URLS = {
    "production": "https://quickbooks.api.intuit.com",
    "sandbox": "https://sandbox-quickbooks.api.intuit.com",
}

MINOR_VERSION = "65"


class QuickBooksClient:

    def __init__(self, access_token, company_id, environment="sandbox", timeout=20):
        self.access_token = access_token
        self.company_id = company_id
        self.base_url = API_BASE_URLS.get(environment, API_BASE_URLS["sandbox"])
        self.timeout = timeout

    @classmethod
    def for_record(cls, record, config):
        return cls(
            access_token=record.access_token,
            company_id=record.company_id,
            environment=config.get("QBO_ENVIRONMENT", "sandbox"),
            timeout=config.get("QBO_HTTP_TIMEOUT", 20),
        )

    def _get(self, path, params=None):
        url = f"{self.base_url}/v3/company/{self.company_id}/{path}"
        query = {"minorversion": MINOR_VERSION}
        query.update(params or {})
        try:
            resp = requests.get(
                url,
                params=query,
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"QuickBooks request {path} failed for company {self.company_id}: {e}")
            raise UpstreamFailed(
                "Could not reach QuickBooks. Please try again.",
                details={"company_id": self.company_id, "path": path},
            ) from e

        if resp.status_code == 401:
            raise RefreshFailed(company_id=self.company_id, provider_status=401)
        if not resp.ok:
            logger.error(
                f"QuickBooks {path} returned {resp.status_code} for company {self.company_id}"
            )
            raise UpstreamFailed(
                "Failed to fetch financial data from QuickBooks.",
                details={"company_id": self.company_id, "path": path,
                         "provider_status": resp.status_code},
            )

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamFailed(
                "QuickBooks returned an unreadable response.",
                details={"company_id": self.company_id, "path": path},
            ) from e

    def get_company_info(self):
        data = self._get(f"companyinfo/{self.company_id}")
        return data.get("CompanyInfo") or {}

    def get_company_name(self):
        info = self.get_company_info()
        return info.get("CompanyName") or info.get("LegalName")

    def get_profit_and_loss(self):
        return self._get("reports/ProfitAndLoss", {
            "summarize_column_by": "Total",
            "date_macro": "This Fiscal Year-to-date",
        })

    def get_balance_sheet(self):
        return self._get("reports/BalanceSheet", {
            "summarize_column_by": "Total",
            "date_macro": "Today",
        })


# ──────────────────────────────────────────────
# Report parsing
# ──────────────────────────────────────────────

def _row_label(section):
    cols = (section or {}).get("ColData") or []
    if not cols:
        return ""
    return str(cols[0].get("value") or "").lower()


def _find_row(rows, labels, exclude=()):
    """Depth-first search for the first row whose Header or Summary label
    contains one of ``labels`` (case-insensitive) and none of ``exclude``.
    """
    labels = [l.lower() for l in labels]
    for row in rows or []:
        for part in ("Header", "Summary"):
            text = _row_label(row.get(part))
            if text and any(l in text for l in labels) and not any(x in text for x in exclude):
                return row
        nested = (row.get("Rows") or {}).get("Row")
        if nested:
            found = _find_row(nested, labels, exclude)
            if found is not None:
                return found
    return None


def _to_float(value):
    try:
        return float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return None


def _summary_value(row, signed=False):
    """First numeric column of the row's Summary. Absolute unless ``signed``."""
    if row is None:
        return 0.0
    for col in (row.get("Summary") or {}).get("ColData") or []:
        number = _to_float(col.get("value"))
        if number is not None:
            return number if signed else abs(number)
    return 0.0


def _top_rows(report):
    return ((report or {}).get("Rows") or {}).get("Row") or []


def extract_financial_metrics(pl_report, bs_report):
    """Flatten ProfitAndLoss + BalanceSheet reports into snapshot fields.

    Net income keeps its sign and falls back to revenue - expenses when the
    report has no net income line.
    """
    pl_rows = _top_rows(pl_report)
    bs_rows = _top_rows(bs_report)

    revenue = _summary_value(_find_row(pl_rows, ["Total Income", "Total Revenue", "Income"],
                                       exclude=("net", "other")))
    expenses = _summary_value(_find_row(pl_rows, ["Total Expenses", "Total Operating Expenses", "Expenses"],
                                        exclude=("other",)))
    gross_profit = _summary_value(_find_row(pl_rows, ["Gross Profit"]), signed=True)

    net_income_row = _find_row(pl_rows, ["Net Income", "Net Profit", "Net Earnings"])
    net_income = _summary_value(net_income_row, signed=True)
    if net_income_row is None and (revenue or expenses):
        net_income = revenue - expenses

    total_assets = _summary_value(_find_row(bs_rows, ["Total Assets"]))
    current_assets = _summary_value(_find_row(bs_rows, ["Total Current Assets"]))
    total_liabilities = _summary_value(
        _find_row(bs_rows, ["Total Liabilities"], exclude=("equity",))
    )
    current_liabilities = _summary_value(_find_row(bs_rows, ["Total Current Liabilities"]))

    return {
        "revenue": revenue,
        "expenses": expenses,
        "net_income": net_income,
        "gross_profit": gross_profit,
        "total_assets": total_assets,
        "current_assets": current_assets,
        "total_liabilities": total_liabilities,
        "current_liabilities": current_liabilities,
    }
