"""
Fingerprint extraction for adverse findings.

Turns a (headline, summary) pair into a ``Fingerprint``: event type, named
authorities, years, risk keywords, identity signals (companies, job titles,
locations, gender, victim framing) and a bag of content words. Everything is
pattern-table driven and has no I/O, so the same text always yields the same
fingerprint.
"""

import re
from typing import FrozenSet, List, Optional, Pattern, Tuple

from .models import (
    Fingerprint,
    RawFinding,
    GENDER_FEMALE,
    GENDER_MALE,
    GENDER_UNKNOWN,
)


# Checked in order; the first type with any matching pattern wins.
EVENT_TYPE_PATTERNS: List[Tuple[str, List[Pattern]]] = [
    ("regulatory_investigation", [
        re.compile(r"ICAC", re.I), re.compile(r"廉政公署"), re.compile(r"investigat", re.I),
        re.compile(r"调查"), re.compile(r"\bprobe[ds]?\b", re.I), re.compile(r"inquiry", re.I),
        re.compile(r"立案"),
    ]),
    ("criminal_charge", [
        re.compile(r"arrested", re.I), re.compile(r"convicted", re.I), re.compile(r"sentenced", re.I),
        re.compile(r"被捕"), re.compile(r"判刑"), re.compile(r"定罪"), re.compile(r"criminal", re.I),
        re.compile(r"逮捕"), re.compile(r"刑拘"),
    ]),
    ("legal_proceedings", [
        re.compile(r"lawsuit", re.I), re.compile(r"\bcourt\b", re.I), re.compile(r"\bwrit\b", re.I),
        re.compile(r"诉讼"), re.compile(r"法院"), re.compile(r"起诉"), re.compile(r"defendant", re.I),
        re.compile(r"被告"),
    ]),
    ("administrative_penalty", [
        re.compile(r"penalt", re.I), re.compile(r"\bfine[sd]?\b", re.I), re.compile(r"violation", re.I),
        re.compile(r"罚款"), re.compile(r"处罚"), re.compile(r"违规"), re.compile(r"\bwarning\b", re.I),
        re.compile(r"警告"),
    ]),
    ("financial_misconduct", [
        re.compile(r"fraud", re.I), re.compile(r"\bscam", re.I), re.compile(r"embezzle", re.I),
        re.compile(r"诈骗"), re.compile(r"欺诈"), re.compile(r"挪用"), re.compile(r"manipulat", re.I),
    ]),
    ("traffic_violation", [
        re.compile(r"drink.?driv", re.I), re.compile(r"酒驾"), re.compile(r"醉驾"),
        re.compile(r"traffic", re.I), re.compile(r"交通"), re.compile(r"驾驶"),
        re.compile(r"licen[cs]e", re.I),
    ]),
]

# Regulators, courts and enforcement bodies. Matches are lowercased.
ENTITY_PATTERNS: List[Pattern] = [
    re.compile(r"\bICAC\b", re.I),
    re.compile(r"廉政公署"),
    re.compile(r"\bHong Kong\b", re.I),
    re.compile(r"香港"),
    re.compile(r"\bHigh Court\b", re.I),
    re.compile(r"高等法院"),
    re.compile(r"\bDistrict Court\b", re.I),
    re.compile(r"区域法院|區域法院"),
    re.compile(r"\bCourt of Final Appeal\b", re.I),
    re.compile(r"终审法院|終審法院"),
    re.compile(r"证监会|證監會"),
    re.compile(r"\bCSRC\b", re.I),
    re.compile(r"\bSFC\b", re.I),
    re.compile(r"\bSEC\b"),
    re.compile(r"\bHKEX\b", re.I),
    re.compile(r"联交所|聯交所"),
    re.compile(r"\bFBI\b", re.I),
    re.compile(r"\bpolice\b", re.I),
    re.compile(r"警方"),
    re.compile(r"公安"),
    re.compile(r"检察院|檢察院"),
    re.compile(r"纪委|紀委"),
]

RISK_TERMS = [
    "icac", "investigation", "arrested", "fraud", "lawsuit", "court",
    "penalty", "fine", "conviction", "convicted", "suspended", "terminated",
    "bribery", "corruption", "money laundering", "insider dealing",
    "调查", "逮捕", "诈骗", "诉讼", "法院", "罚款", "判决", "停职",
    "受贿", "行贿", "贪污", "洗钱", "内幕交易",
    "director", "executive", "chairman", "ceo",
    "董事", "执行", "主席", "总裁",
]

COMPANY_PATTERNS: List[Pattern] = [
    re.compile(
        r"\b(?:[A-Z][\w&'.-]*\s+){1,5}"
        r"(?:Holdings\s+Limited|Group\s+Limited|Limited|Ltd\.?|Inc\.?|Corporation|Corp\.?"
        r"|Holdings|Group|Bank|LLC|PLC|Co\.)"
    ),
    re.compile(r"[一-鿿]{2,10}(?:股份有限公司|有限公司|股份公司|集团|控股|银行|銀行)"),
]

CJK_COMPANY_SUFFIX_RE = re.compile(r"(?:股份有限公司|有限公司|股份公司|集团|控股|银行|銀行)$")
CJK_CHAR_RE = re.compile(r"[一-鿿]")

# Chinese has no word breaks, so the company pattern also swallows whatever
# precedes the name. Everything up to the last lead-in is cut off.
CJK_COMPANY_LEAD_INS = [
    "任职于", "任職於", "就职于", "就職於", "曾任", "担任", "擔任", "出任", "加入",
    "据悉", "據悉", "据报", "據報", "旗下", "其中", "来自", "來自", "位于", "位於",
    "的", "是", "在", "于", "於", "与", "與", "和", "及", "被", "由", "对", "對", "为", "為",
]

TITLE_PATTERNS: List[Pattern] = [
    re.compile(
        r"\b(?:executive director|non-executive director|independent director|managing director"
        r"|director|chairman|chairwoman|chairperson|vice[- ]president|president|ceo|cfo|coo|cto"
        r"|chief executive|general manager|founder|company secretary|legal representative"
        r"|mayor|minister|professor)\b",
        re.I,
    ),
    re.compile(r"董事长|董事長|副董事长|执行董事|独立董事|董事|总经理|總經理|总裁|總裁|主席|行长|行長"
               r"|局长|局長|书记|書記|市长|市長|创始人|創辦人|法定代表人|教授"),
]

LOCATION_TERMS = [
    "hong kong", "shenzhen", "beijing", "shanghai", "guangzhou", "macau", "macao",
    "singapore", "taiwan", "london", "new york",
    "香港", "深圳", "北京", "上海", "广州", "廣州", "澳门", "澳門", "新加坡", "台湾", "台灣",
]

FEMALE_CUES: List[Pattern] = [
    re.compile(r"\b(?:she|her|hers|herself|woman|wife|mother|daughter|girlfriend|mrs|ms|madam)\b", re.I),
    re.compile(r"她|女士|妻子|女儿|女兒|母亲|母親|女子|女性"),
]

MALE_CUES: List[Pattern] = [
    re.compile(r"\b(?:he|him|his|himself|man|husband|father|son|boyfriend|mr)\b", re.I),
    re.compile(r"先生|丈夫|儿子|兒子|父亲|父親|男子|男性"),
]

VICTIM_PATTERNS: List[Pattern] = [
    re.compile(r"\b(?:killed|murdered|stabbed|attacked|assaulted) by\b", re.I),
    re.compile(r"\b(?:was|is|became|fell) (?:a |the )?victims?\b", re.I),
    re.compile(r"\bvictims? of\b", re.I),
    re.compile(r"\b(?:former|ex-?)\s*(?:boyfriend|girlfriend|partner|husband|wife)\b", re.I),
    re.compile(r"遇害|被杀|被殺|被害身亡|前男友|前女友|前夫|前妻"),
]

STOPWORDS: FrozenSet[str] = frozenset({
    "the", "and", "for", "with", "was", "were", "that", "this", "from", "his", "her",
    "has", "have", "had", "are", "but", "not", "which", "who", "its", "into", "after",
    "over", "also", "been", "their", "they", "them", "said", "says", "will", "would",
    "could", "about", "than", "then", "when", "where", "while", "other", "such", "more",
    "most", "some", "any", "all", "one", "two", "out", "off", "under", "upon", "she",
    "him", "you", "our", "per", "via", "did", "does", "can", "may", "these", "those",
    "there", "here", "what", "how", "why", "being", "between", "during", "against",
    "我们", "他们", "她们", "因为", "所以", "但是", "以及", "这个", "那个", "一个",
    "没有", "已经", "可以", "表示", "报道", "相关", "其中", "目前", "此前", "对于",
})

YEAR_RE = re.compile(r"(?<!\d)(?:19|20)\d{2}(?!\d)")
ENGLISH_TOKEN_RE = re.compile(r"[a-z]{3,}")
CJK_RUN_RE = re.compile(r"[一-鿿]{2,}")


def _classify_event(text: str) -> str:
    for event_type, patterns in EVENT_TYPE_PATTERNS:
        if any(p.search(text) for p in patterns):
            return event_type
    return "other"


def _extract_years(text: str) -> Tuple[int, ...]:
    return tuple(sorted({int(y) for y in YEAR_RE.findall(text)}))


def _collect_matches(text: str, patterns: List[Pattern]) -> FrozenSet[str]:
    found = set()
    for pattern in patterns:
        for match in pattern.findall(text):
            found.add(match.lower().strip())
    return frozenset(found)


def _normalize_company(name: str) -> str:
    name = re.sub(r"\s+", " ", name.strip().lower()).rstrip(".")
    if name.startswith("the "):
        name = name[4:]
    return name


def _trim_cjk_company(name: str) -> str:
    """
    Drop lead-in text captured before a Chinese company name.

    Single-character particles only cut when they are not the first
    character, since names such as 和记黄埔 start with one. Returns "" if
    nothing but the suffix would remain.
    """
    suffix = CJK_COMPANY_SUFFIX_RE.search(name)
    if suffix is None:
        return name
    core = name[:suffix.start()]
    cut = 0
    for lead_in in CJK_COMPANY_LEAD_INS:
        idx = core.rfind(lead_in)
        if idx < 0 or (len(lead_in) == 1 and idx == 0):
            continue
        cut = max(cut, idx + len(lead_in))
    core = core[cut:]
    if len(core) < 2:
        return ""
    return core + name[suffix.start():]


def extract_companies(text: str) -> FrozenSet[str]:
    companies = set()
    for pattern in COMPANY_PATTERNS:
        for match in pattern.findall(text):
            if CJK_CHAR_RE.match(match):
                match = _trim_cjk_company(match)
            normalized = _normalize_company(match)
            if normalized:
                companies.add(normalized)
    return frozenset(companies)


def detect_gender(text: str) -> str:
    """Female cues are checked first, then male cues."""
    if any(p.search(text) for p in FEMALE_CUES):
        return GENDER_FEMALE
    if any(p.search(text) for p in MALE_CUES):
        return GENDER_MALE
    return GENDER_UNKNOWN


def detect_victim(text: str) -> bool:
    return any(p.search(text) for p in VICTIM_PATTERNS)


def extract_content_words(text: str) -> FrozenSet[str]:
    lowered = text.lower()
    tokens = set(ENGLISH_TOKEN_RE.findall(lowered))
    tokens.update(CJK_RUN_RE.findall(lowered))
    return frozenset(t for t in tokens if t not in STOPWORDS)


def extract_fingerprint(headline: Optional[str], summary: Optional[str]) -> Fingerprint:
    """
    Extract a fingerprint from a finding's headline and summary.

    Never raises; text with no recognizable signal yields a fingerprint with
    empty collections and ``event_type == "other"``.
    """
    text = f"{headline or ''} {summary or ''}"
    lowered = text.lower()

    return Fingerprint(
        event_type=_classify_event(text),
        entities=_collect_matches(text, ENTITY_PATTERNS),
        years=_extract_years(text),
        keywords=frozenset(term for term in RISK_TERMS if term in lowered),
        content_words=extract_content_words(text),
        companies=extract_companies(text),
        titles=_collect_matches(text, TITLE_PATTERNS),
        locations=frozenset(term for term in LOCATION_TERMS if term in lowered),
        gender=detect_gender(text),
        is_victim=detect_victim(text),
    )


def fingerprint_for(finding: RawFinding) -> Fingerprint:
    """Precomputed fingerprint if the finding carries one, else extract it."""
    if finding.fingerprint is not None:
        return finding.fingerprint
    return extract_fingerprint(finding.headline, finding.summary)
