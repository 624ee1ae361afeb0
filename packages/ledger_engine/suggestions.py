"""Keyword-based category suggestions for transaction notes.

A note is matched against two keyword tables, each mapping a lower-cased
keyword to a category icon:

1. keywords learned from the user's own category choices (persisted in
   ``ledger_learned_keywords``), then
2. the built-in table below (Korean and English merchants and words).

Within a table longer keywords are tried first, ties alphabetically, so the
result does not depend on dict order ("uber eats" wins over "uber"). ASCII
keywords of three characters or fewer ("cu", "kt", "bus") must match a whole
word of the note; everything else matches as a substring, which lets Hangul
keywords match words with attached particles ("카페에서"). The suggested
category is the first of the candidate categories carrying the matched icon.

Learning never overrides a built-in keyword.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Mapping, Sequence

from sqlalchemy import delete, select

from db.models.ledger import LedgerCategory, LedgerLearnedKeyword

from .errors import NotFound
from .logging_setup import get_logger
from .models import Category, TransactionType
from .storage import Repository, to_category
from .transactions import coerce_type

logger = get_logger(__name__)

MIN_KEYWORD_LENGTH = 2
_WHOLE_WORD_MAX_LENGTH = 3
_WORD_RE = re.compile(r"[^\W_]+")

_KEYWORDS_BY_ICON: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "fork.knife",
        (
            "스타벅스", "카페", "커피", "투썸", "이디야", "맥도날드", "버거킹", "롯데리아",
            "bbq", "bhc", "치킨", "피자", "도미노", "파파존스", "배달의민족", "배민", "요기요",
            "쿠팡이츠", "편의점", "gs25", "cu", "세븐일레븐", "이마트24", "마트", "이마트",
            "홈플러스", "코스트코", "식당", "음식", "점심", "저녁", "아침", "식비", "밥",
            "starbucks", "cafe", "coffee", "mcdonald", "burger", "pizza", "chicken",
            "restaurant", "food", "lunch", "dinner", "breakfast", "grocery", "supermarket",
            "uber eats", "doordash",
        ),
    ),
    (
        "car.fill",
        (
            "택시", "카카오택시", "타다", "버스", "지하철", "교통", "주유", "주유소", "기름",
            "고속도로", "톨비", "주차", "주차비", "주차장", "티머니", "ktx", "srt", "기차",
            "비행기", "항공",
            "taxi", "uber", "lyft", "bus", "subway", "metro", "gas", "parking", "toll",
            "flight", "airline", "train",
        ),
    ),
    (
        "bag.fill",
        (
            "쿠팡", "네이버쇼핑", "11번가", "지마켓", "옥션", "무신사", "올리브영", "다이소",
            "쇼핑", "옷", "의류", "신발", "화장품", "백화점", "아울렛",
            "amazon", "shopping", "clothes", "shoes", "walmart", "target", "costco",
        ),
    ),
    (
        "house.fill",
        (
            "월세", "전세", "관리비", "전기세", "가스비", "수도세", "인터넷",
            "rent", "utility", "electric", "water",
        ),
    ),
    (
        "phone.fill",
        (
            "통신비", "핸드폰", "휴대폰", "skt", "kt", "lg유플러스", "알뜰폰",
            "phone", "mobile", "cellular", "verizon", "at&t", "t-mobile",
        ),
    ),
    (
        "cross.case.fill",
        (
            "병원", "약국", "약", "의원", "치과", "안과", "피부과", "한의원", "건강검진",
            "hospital", "pharmacy", "doctor", "clinic", "medicine", "dental",
        ),
    ),
    (
        "book.fill",
        (
            "학원", "교육", "학비", "등록금", "책", "교재", "강의", "인강", "클래스101",
            "school", "tuition", "course", "book", "education", "udemy", "coursera",
        ),
    ),
    (
        "gamecontroller.fill",
        (
            "영화", "cgv", "롯데시네마", "메가박스", "넷플릭스", "유튜브", "왓챠", "웨이브",
            "디즈니", "게임", "스팀", "닌텐도", "플레이스테이션", "노래방", "헬스", "피트니스",
            "pt", "필라테스", "요가",
            "movie", "netflix", "youtube", "disney", "spotify", "game", "steam",
            "playstation", "xbox", "nintendo", "gym", "fitness",
        ),
    ),
    (
        "banknote.fill",
        ("월급", "급여", "보너스", "상여금", "salary", "paycheck", "bonus", "income"),
    ),
    ("plus.circle.fill", ("용돈", "부수입")),
    (
        "chart.line.uptrend.xyaxis",
        ("투자", "배당", "이자", "investment", "dividend", "interest"),
    ),
)

# keyword -> category icon
BUILTIN_KEYWORDS: dict[str, str] = {
    keyword: icon for icon, keywords in _KEYWORDS_BY_ICON for keyword in keywords
}


def _match_order(table: Mapping[str, str]) -> list[str]:
    return sorted(table, key=lambda k: (-len(k), k))


_BUILTIN_ORDER = _match_order(BUILTIN_KEYWORDS)


def note_words(note: str) -> list[str]:
    """Distinct lower-cased alphanumeric words of ``note``, in order.

    Words shorter than ``MIN_KEYWORD_LENGTH`` are dropped.
    """

    words = _WORD_RE.findall(note.casefold())
    return list(dict.fromkeys(w for w in words if len(w) >= MIN_KEYWORD_LENGTH))


def _keyword_in(keyword: str, text: str, words: set[str]) -> bool:
    if keyword.isascii() and len(keyword) <= _WHOLE_WORD_MAX_LENGTH:
        return keyword in words
    return keyword in text


def _first_icon(
    text: str, words: set[str], table: Mapping[str, str], order: Iterable[str], icons: set[str]
) -> str | None:
    for keyword in order:
        icon = table[keyword]
        if icon in icons and _keyword_in(keyword, text, words):
            return icon
    return None


def suggest_category(
    note: str,
    categories: Sequence[Category],
    learned: Mapping[str, str] | None = None,
) -> Category | None:
    """Suggest one of ``categories`` for ``note``, or None when nothing matches."""

    text = note.casefold()
    if not text.strip() or not categories:
        return None
    words = set(_WORD_RE.findall(text))
    icons = {c.icon for c in categories}

    icon = None
    if learned:
        icon = _first_icon(text, words, learned, _match_order(learned), icons)
    if icon is None:
        icon = _first_icon(text, words, BUILTIN_KEYWORDS, _BUILTIN_ORDER, icons)
    if icon is None:
        return None
    return next(c for c in categories if c.icon == icon)


class SuggestionRepository(Repository):
    """Category suggestions backed by the learned-keyword table."""

    def learned_keywords(self) -> dict[str, str]:
        with self._reading("fetch learned keywords") as session:
            rows = session.scalars(
                select(LedgerLearnedKeyword).order_by(LedgerLearnedKeyword.keyword)
            ).all()
            return {r.keyword: r.category_icon for r in rows}

    def suggest(self, note: str, type: TransactionType | str | None = None) -> Category | None:
        """Suggest a stored category for ``note``, optionally limited to one ``type``."""

        stmt = select(LedgerCategory).order_by(LedgerCategory.type, LedgerCategory.sort_order)
        if type is not None:
            stmt = stmt.where(LedgerCategory.type == coerce_type(type).value)
        with self._reading("suggest category") as session:
            categories = [to_category(r) for r in session.scalars(stmt).all()]
            learned = {
                r.keyword: r.category_icon
                for r in session.scalars(select(LedgerLearnedKeyword)).all()
            }
        return suggest_category(note, categories, learned)

    def learn_from_selection(self, note: str, category: Category | uuid.UUID) -> list[str]:
        """Remember the words of ``note`` as keywords for ``category``.

        Built-in keywords are left alone. Returns the keywords written.
        """

        with self._saving("learn keywords") as session:
            if isinstance(category, Category):
                icon = category.icon
            else:
                row = session.get(LedgerCategory, category)
                if row is None:
                    raise NotFound("category", category)
                icon = row.icon
            if not icon:
                return []
            now = self.ctx.now()
            learned = [w for w in note_words(note) if w not in BUILTIN_KEYWORDS]
            for word in learned:
                existing = session.get(LedgerLearnedKeyword, word)
                if existing is None:
                    session.add(
                        LedgerLearnedKeyword(keyword=word, category_icon=icon, learned_at=now)
                    )
                else:
                    existing.category_icon = icon
                    existing.learned_at = now
        if learned:
            logger.debug("learned %d keyword(s) for icon %s", len(learned), icon)
        return learned

    def clear_learned(self) -> int:
        with self._deleting("clear learned keywords") as session:
            return session.execute(delete(LedgerLearnedKeyword)).rowcount


__all__ = [
    "BUILTIN_KEYWORDS",
    "MIN_KEYWORD_LENGTH",
    "SuggestionRepository",
    "note_words",
    "suggest_category",
]
