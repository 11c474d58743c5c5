"""
JSON documents stored in the single ``col`` row.

The legacy collection keeps its configuration as JSON text columns:

- ``conf``   global collection config (:class:`CollectionConfig`)
- ``models`` note types keyed by id (:class:`NoteModel`)
- ``decks``  deck tree keyed by id (:class:`DeckTree` of :class:`Deck`)
- ``dconf``  deck option groups keyed by id (:class:`DeckOptions`)
- ``tags``   tag registry, always ``{}`` here

Each struct has a ``to_dict`` producing Anki's camelCase keys; ``dumps``
serializes it for the column.
"""

import json
from dataclasses import dataclass, field

DEFAULT_DECK_ID = 1
DEFAULT_OPTIONS_ID = 1

# Creation stamp Anki used for the reference collection these packages mimic
LEGACY_CREATION_TIME = 1436126400

MODEL_CSS = (
    ".card {\n"
    " font-family: arial;\n"
    " font-size: 20px;\n"
    " text-align: center;\n"
    " color: black;\n"
    " background-color: white;\n"
    "}\n"
)

LATEX_PRE = (
    "\\documentclass[12pt]{article}\n"
    "\\special{papersize=3in,5in}\n"
    "\\usepackage[utf8]{inputenc}\n"
    "\\usepackage{amssymb,amsmath}\n"
    "\\pagestyle{empty}\n"
    "\\setlength{\\parindent}{0in}\n"
    "\\begin{document}\n"
)
LATEX_POST = "\\end{document}"


def dumps(value: dict) -> str:
    return json.dumps(value, ensure_ascii=False)


@dataclass
class CollectionConfig:
    current_deck: int = DEFAULT_DECK_ID
    current_model: int = 0
    active_decks: list[int] = field(default_factory=lambda: [DEFAULT_DECK_ID])

    def to_dict(self) -> dict:
        return {
            "nextPos": 1,
            "estTimes": True,
            "activeDecks": list(self.active_decks),
            "sortType": "noteFld",
            "timeLim": 0,
            "sortBackwards": False,
            "addToCur": True,
            "curDeck": self.current_deck,
            "newBury": True,
            "newSpread": 0,
            "dueCounts": True,
            "curModel": self.current_model,
            "collapseTime": 1200,
        }


@dataclass
class NoteField:
    name: str
    ord: int
    font: str = "Arial"
    size: int = 20

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ord": self.ord,
            "sticky": False,
            "rtl": False,
            "font": self.font,
            "size": self.size,
        }


@dataclass
class CardTemplate:
    name: str
    ord: int
    qfmt: str
    afmt: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ord": self.ord,
            "qfmt": self.qfmt,
            "afmt": self.afmt,
            "did": None,
            "bqfmt": "",
            "bafmt": "",
        }


@dataclass
class NoteModel:
    """A note type. Packages built here always use :meth:`basic`."""

    id: int
    name: str
    deck_id: int
    fields: list[NoteField]
    templates: list[CardTemplate]
    css: str = MODEL_CSS
    mod: int = LEGACY_CREATION_TIME

    @classmethod
    def basic(cls, model_id: int, deck_id: int) -> "NoteModel":
        """Two fields (Front, Back) and one forward template."""
        return cls(
            id=model_id,
            name="Basic",
            deck_id=deck_id,
            fields=[NoteField("Front", 0), NoteField("Back", 1)],
            templates=[
                CardTemplate(
                    name="Card 1",
                    ord=0,
                    qfmt="{{Front}}",
                    afmt='{{FrontSide}}<hr id="answer">{{Back}}',
                )
            ],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": 0,
            "mod": self.mod,
            "usn": 0,
            "sortf": 0,
            "did": self.deck_id,
            "tmpls": [t.to_dict() for t in self.templates],
            "flds": [f.to_dict() for f in self.fields],
            "css": self.css,
            "latexPre": LATEX_PRE,
            "latexPost": LATEX_POST,
            # Card 1 is generated whenever field 0 is non-empty
            "req": [[0, "any", [0]]],
        }


@dataclass
class Deck:
    id: int
    name: str
    description: str = ""
    mod: int = LEGACY_CREATION_TIME
    options_id: int = DEFAULT_OPTIONS_ID

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "desc": self.description,
            "mod": self.mod,
            "usn": 0,
            "collapsed": False,
            "newToday": [0, 0],
            "revToday": [0, 0],
            "lrnToday": [0, 0],
            "timeToday": [0, 0],
            "dyn": 0,
            "extendNew": 10,
            "extendRev": 50,
            "conf": self.options_id,
        }


@dataclass
class DeckTree:
    """The root "Default" deck plus one deck per set."""

    decks: list[Deck] = field(
        default_factory=lambda: [Deck(DEFAULT_DECK_ID, "Default")]
    )

    def add(self, deck: Deck) -> None:
        self.decks.append(deck)

    def to_dict(self) -> dict:
        return {str(d.id): d.to_dict() for d in self.decks}


@dataclass
class DeckOptions:
    """Anki's stock "Default" option group."""

    id: int = DEFAULT_OPTIONS_ID
    name: str = "Default"
    new_per_day: int = 20
    reviews_per_day: int = 200

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "mod": 0,
            "usn": 0,
            "maxTaken": 60,
            "autoplay": True,
            "timer": 0,
            "replayq": True,
            "dyn": False,
            "new": {
                "delays": [1, 10],
                "ints": [1, 4, 7],
                "initialFactor": 2500,
                "order": 1,
                "perDay": self.new_per_day,
                "bury": True,
                "separate": True,
            },
            "rev": {
                "perDay": self.reviews_per_day,
                "ease4": 1.3,
                "fuzz": 0.05,
                "ivlFct": 1,
                "maxIvl": 36500,
                "bury": True,
                "minSpace": 1,
            },
            "lapse": {
                "delays": [10],
                "mult": 0,
                "minInt": 1,
                "leechFails": 8,
                "leechAction": 0,
            },
        }
