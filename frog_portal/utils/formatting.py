"""
Display helpers shared by the API responses.

Dates are rendered the way the Japanese front end shows them, file sizes use
binary units and money follows the ja-JP currency conventions.
"""

import math
from datetime import date, datetime
from typing import Iterable, Optional, Union

DateLike = Union[str, date, datetime, None]

BYTE_UNITS = ["Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]

CURRENCY_SYMBOLS = {
    "JPY": "￥",
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "NZD": "NZ$",
    "GBP": "£",
    "EUR": "€",
}

APPLICATION_STATUS_LABELS = {
    "draft": "下書き",
    "submitted": "申請済み",
    "reviewing": "レビュー中",
    "approved": "承認済み",
    "rejected": "却下",
}

# workflow statuses shown with one of the badge variants below
STATUS_VARIANTS = {
    "approved": "success",
    "completed": "success",
    "rejected": "error",
    "cancelled": "warning",
    "submitted": "info",
    "reviewing": "pending",
}

STATUS_BADGES = {
    "success": "完了",
    "error": "エラー",
    "warning": "警告",
    "info": "情報",
    "pending": "処理中",
    "default": "ステータス",
}

INTAKE_UNKNOWN = "要問合せ"


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive percentages."""
    return int(math.floor(value + 0.5))


def _to_datetime(value: DateLike) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None
    return None


def format_date(value: DateLike) -> str:
    """'2025年04月01日'; empty string when the value is missing or unparseable."""
    d = _to_datetime(value)
    if d is None:
        return ""
    return f"{d.year}年{d.month:02d}月{d.day:02d}日"


def format_datetime(value: DateLike) -> str:
    """'2025/4/1 09:30', '未設定' for no value and '無効な日付' for garbage."""
    if not value:
        return "未設定"
    d = _to_datetime(value)
    if d is None:
        return "無効な日付"
    return f"{d.year}/{d.month}/{d.day} {d.hour:02d}:{d.minute:02d}"


def format_bytes(size: int, decimals: int = 2) -> str:
    if size <= 0:
        return "0 Bytes"

    k = 1024
    dm = max(decimals, 0)
    i = min(int(math.floor(math.log(size) / math.log(k))), len(BYTE_UNITS) - 1)
    value = round(size / math.pow(k, i), dm)
    # drop trailing zeros: 1.50 -> 1.5, 2.00 -> 2
    text = f"{value:.{dm}f}".rstrip("0").rstrip(".") if dm else f"{value:.0f}"
    return f"{text} {BYTE_UNITS[i]}"


def format_currency(amount: float, currency: str = "JPY") -> str:
    code = currency.upper()
    digits = 0 if code == "JPY" else 2
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.{digits}f}"


def detect_currency(text: Optional[str]) -> Optional[str]:
    """Currency code of an amount written like 'CA$18,500' or 'CAD 18,500'."""
    if not text:
        return None
    raw = text.strip().upper()
    for code in CURRENCY_SYMBOLS:
        if raw.startswith(code):
            return code
    # longest symbol first so CA$ wins over $
    for code, symbol in sorted(CURRENCY_SYMBOLS.items(), key=lambda kv: -len(kv[1])):
        if raw.startswith(symbol.upper()):
            return code
    if raw.startswith("¥"):
        return "JPY"
    return None


def format_intake_months(intake_dates: Iterable[dict]) -> str:
    """Unique start months in calendar order, e.g. '1月、4月、9月'."""
    months = sorted({d["month"] for d in intake_dates if d.get("month")})
    if not months:
        return INTAKE_UNKNOWN
    return "、".join(f"{m}月" for m in months)


def application_status_label(status: Optional[str]) -> str:
    return APPLICATION_STATUS_LABELS.get(status, status or "")


def status_badge(status: Optional[str]) -> dict:
    """Badge variant and default label for a badge variant or workflow status."""
    variant = STATUS_VARIANTS.get(status, status)
    if variant not in STATUS_BADGES:
        variant = "default"
    return {"variant": variant, "label": STATUS_BADGES[variant]}


def progress_color(percent: float) -> str:
    if percent >= 100:
        return "green"
    if percent > 75:
        return "blue"
    if percent > 50:
        return "light_blue"
    if percent > 25:
        return "amber"
    return "gray"
