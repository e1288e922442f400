"""Typed-answer checking for study cards."""
import random
import unicodedata
from typing import Optional, Sequence

from vocadeck.models.models import Word
from vocadeck.models.srs_models import CardType


def normalize_text(text: str) -> str:
    """Lowercase a text and strip its accents ("Été" -> "ete")."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def expected_answer(word: Word, card_type: CardType) -> str:
    """The side of a word the user has to type for a card type.

    Recognition cards are answered in English, production and listening
    cards in French.
    """
    if card_type is CardType.RECOGNITION:
        return word.english_translation
    return word.french_word


def check_answer(word: Word, answer: str, card_type: CardType) -> bool:
    """Check a typed answer, ignoring case, accents and surrounding whitespace."""
    expected = expected_answer(word, card_type)
    return normalize_text(answer.strip()) == normalize_text(expected.strip())


def choose_card_type(
    card_types: Sequence[CardType], rng: Optional[random.Random] = None
) -> CardType:
    """Pick the card type of the next word among the enabled ones."""
    if not card_types:
        return CardType.RECOGNITION
    rng = rng or random.Random()
    return rng.choice(list(card_types))
