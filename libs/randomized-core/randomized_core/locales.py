import locale
import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from random import Random
from typing import Iterator

from randomized_core.errors import ConfigurationError

logger = logging.getLogger("randomized")

RANDOM_LOCALE = "random"


# ---------------------------------------------------------------------------- #
#                                 Locale Tags                                  #
# ---------------------------------------------------------------------------- #


@dataclass(frozen=True)
class Locale:
    language: str
    script: str = ""
    region: str = ""
    variants: tuple[str, ...] = ()

    def to_tag(self) -> str:
        parts = [self.language or "und"]
        if self.script:
            parts.append(self.script)
        if self.region:
            parts.append(self.region)
        parts.extend(self.variants)
        return "-".join(parts)

    def to_posix(self) -> str:
        """`ll_RR` form as used by the C library, e.g. `en_US`."""
        if not self.language:
            return "C"
        return f"{self.language}_{self.region}" if self.region else self.language

    def __str__(self):
        return self.to_tag()


ROOT_LOCALE = Locale("")

# language [-script] [-region] *(-variant)
LANGUAGE_RE = re.compile(r"^[a-zA-Z]{2,3}$|^[a-zA-Z]{5,8}$")
SCRIPT_RE = re.compile(r"^[a-zA-Z]{4}$")
REGION_RE = re.compile(r"^[a-zA-Z]{2}$|^[0-9]{3}$")
VARIANT_RE = re.compile(r"^[0-9a-zA-Z]{5,8}$|^[0-9][0-9a-zA-Z]{3}$")


def parse_locale_tag(tag: str) -> Locale:
    """Parse a BCP 47 language tag (language, script, region and variants only)."""
    if not isinstance(tag, str) or not tag.strip():
        raise ConfigurationError(f"ill-formed locale tag {tag!r}")

    subtags = tag.strip().split("-")
    if any(not s for s in subtags):
        raise ConfigurationError(f"ill-formed locale tag {tag!r}: empty subtag")

    language = subtags.pop(0)
    if not LANGUAGE_RE.match(language):
        raise ConfigurationError(f"ill-formed locale tag {tag!r}: bad language '{language}'")
    language = language.lower()
    if language == "und":
        language = ""

    script = ""
    if subtags and SCRIPT_RE.match(subtags[0]):
        script = subtags.pop(0).title()

    region = ""
    if subtags and REGION_RE.match(subtags[0]):
        region = subtags.pop(0).upper()

    variants = []
    while subtags and VARIANT_RE.match(subtags[0]):
        variants.append(subtags.pop(0).lower())

    if subtags:
        raise ConfigurationError(f"ill-formed locale tag {tag!r}: unexpected subtag '{subtags[0]}'")
    return Locale(language, script, region, tuple(variants))


# ---------------------------------------------------------------------------- #
#                               Random Locales                                 #
# ---------------------------------------------------------------------------- #

AVAILABLE_LOCALE_TAGS = (
    "ar-EG", "ar-SA", "be-BY", "bg-BG", "ca-ES", "cs-CZ", "da-DK", "de-AT",
    "de-CH", "de-DE", "el-GR", "en-AU", "en-CA", "en-GB", "en-IE", "en-IN",
    "en-US", "es-AR", "es-ES", "es-MX", "et-EE", "fi-FI", "fr-BE", "fr-CA",
    "fr-CH", "fr-FR", "he-IL", "hi-IN", "hr-HR", "hu-HU", "is-IS", "it-IT",
    "ja-JP", "ko-KR", "lt-LT", "lv-LV", "mk-MK", "nl-NL", "no-NO", "pl-PL",
    "pt-BR", "pt-PT", "ro-RO", "ru-RU", "sk-SK", "sl-SI", "sq-AL",
    "sr-Latn-RS", "sv-SE", "th-TH", "tr-TR", "uk-UA", "vi-VN", "zh-Hans-CN",
    "zh-Hant-TW",
)

AVAILABLE_LOCALES: tuple[Locale, ...] = tuple(parse_locale_tag(t) for t in AVAILABLE_LOCALE_TAGS)


def random_locale(rng: Random) -> Locale:
    return rng.choice(AVAILABLE_LOCALES)


def resolve_locale(config: str, rng: Random) -> Locale:
    """`"random"` picks a locale from the stream, any other value is a tag."""
    if config.strip().lower() == RANDOM_LOCALE:
        return random_locale(rng)
    return parse_locale_tag(config)


def validate_locale_config(config: str):
    if config.strip().lower() != RANDOM_LOCALE:
        parse_locale_tag(config)


# ---------------------------------------------------------------------------- #
#                               Default Locale                                 #
# ---------------------------------------------------------------------------- #

_default_lock = threading.Lock()
_default_locale: Locale | None = None


def system_locale() -> Locale:
    try:
        name, _encoding = locale.getlocale()
    except ValueError:
        # unparsable LC_* environment values
        return ROOT_LOCALE
    if not name or name in ("C", "POSIX"):
        return ROOT_LOCALE
    try:
        return parse_locale_tag(name.split("@")[0].replace("_", "-"))
    except ConfigurationError:
        logger.debug(f"system locale '{name}' is not a language tag, using the root locale")
        return ROOT_LOCALE


def get_default_locale() -> Locale:
    global _default_locale
    with _default_lock:
        if _default_locale is None:
            _default_locale = system_locale()
        return _default_locale


def set_default_locale(new_locale: Locale) -> Locale:
    """Install `new_locale` as the harness default and return the previous one."""
    global _default_locale
    with _default_lock:
        previous = _default_locale if _default_locale is not None else system_locale()
        _default_locale = new_locale
        return previous


@contextmanager
def locale_scope(new_locale: Locale) -> Iterator[Locale]:
    previous = set_default_locale(new_locale)
    logger.debug(f"default locale [{new_locale}] installed, previous was [{previous}]")
    try:
        yield new_locale
    finally:
        set_default_locale(previous)
        logger.debug(f"default locale [{previous}] restored")
