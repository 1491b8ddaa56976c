"""
Field types.

Every column of a record is held by one ``Field``. A field knows how to take
a value from storage (trusted, kept as-is) or from an interface such as a web
form (normalized first), how to check it, and how to render it as plain
text, display markup or a form control.

The set of field types is closed: ``FIELD_TYPES`` maps every ``FieldDef.kind``
to its class and ``build_field`` is the only factory.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Optional, Tuple, Type

from dbrecord.domain.errors import ConfigurationError, ErrorList, Media, StorageError
from dbrecord.domain.schema import FieldDef
from dbrecord.utils.logging import get_logger
from dbrecord.utils.text import crunch, has_content, html_escape, title_case

if TYPE_CHECKING:
    from dbrecord.domain.record import Record

logger = get_logger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_LONG_ZERO = re.compile(r"^(?:0+(?:\.0*)?|\.0+)$")


class Field:
    """Base field: holds a raw value and renders it as text."""

    kind: ClassVar[str] = "text"

    def __init__(self, name: str, definition: FieldDef, login: Any = None) -> None:
        self.name = name.lower()
        self.definition = definition
        self.login = login
        self.value: Any = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, value={self.value!r})"

    # -- declaration shortcuts -------------------------------------------------

    @property
    def required(self) -> bool:
        return self.definition.required

    @property
    def write_once(self) -> bool:
        return self.definition.write_once

    @property
    def store_in_db(self) -> bool:
        return self.definition.store_in_db

    @property
    def desc_short(self) -> str:
        return self.definition.desc_short or title_case(self.name.replace("_", " "))

    def desc_short_html(self) -> str:
        return html_escape(self.desc_short)

    # -- value intake ----------------------------------------------------------

    def normalize(self, value: Any) -> Any:
        return value

    def set_from_interface(self, value: Any) -> None:
        """Normalize and store a value that came from a user or caller."""
        self.value = self.normalize(value)

    def set_from_storage(self, value: Any) -> None:
        """Store a value read from the database without normalizing it."""
        self.value = value

    def to_storage(self) -> Any:
        """Value to send to the database."""
        return self.text_display()

    # -- rendering -------------------------------------------------------------

    def text_display(self) -> str:
        return "" if self.value is None else str(self.value)

    def value_html(self) -> str:
        return html_escape(self.text_display())

    def html_display(self) -> str:
        if not has_content(self.text_display()):
            return "<I>none</I>"
        return self.value_html()

    def html_form_field(self) -> str:
        return self.html_hidden()

    def html_hidden(self) -> str:
        return (
            f'<input type="hidden" name="{html_escape(self.name)}" '
            f'value="{html_escape(self.to_storage())}">'
        )

    def html_display_row(self) -> str:
        return f"<tr><th>{self.desc_short_html()}</th><td>{self.html_display()}</td></tr>"

    def output(self, media: Media = Media.TEXT) -> str:
        """Render the field for the requested media."""
        if media == Media.TEXT:
            return self.text_display()
        if media == Media.HTML:
            return self.html_display()
        if media == Media.HTML_FORM:
            return self.html_form_field()
        raise ValueError(f"Unknown media: {media!r}")

    # -- validation ------------------------------------------------------------

    def validate(self, record: Optional["Record"], errors: ErrorList) -> bool:
        """Check the current value, adding problems to ``errors``."""
        if self.required and not has_content(self.text_display()):
            return errors.add(text=f"{self.desc_short} is a required field")
        return True


class Text(Field):
    """Single-line text with optional whitespace, casing and size rules."""

    kind = "text"

    def normalize(self, value: Any) -> str:
        text = "" if value is None else str(value)
        definition = self.definition
        if definition.crunch:
            text = crunch(text)
        else:
            if definition.trim or definition.ltrim:
                text = text.lstrip()
            if definition.trim or definition.rtrim:
                text = text.rstrip()
        if definition.case == "upper":
            text = text.upper()
        elif definition.case == "lower":
            text = text.lower()
        elif definition.case == "title":
            text = title_case(text)
        return text

    def validate(self, record: Optional["Record"], errors: ErrorList) -> bool:
        ok = True
        text = self.text_display()
        if self.required and not has_content(text):
            ok = errors.add(text=f"{self.desc_short} is a required field")
        max_chars = self.definition.max_chars
        if max_chars is not None and len(text) > max_chars:
            ok = errors.add(
                text=f"{self.desc_short} may be no longer than {max_chars} characters"
            )
        return ok

    def html_form_field(self) -> str:
        attrs = [
            'type="text"',
            f'name="{html_escape(self.name)}"',
            f'value="{self.value_html()}"',
        ]
        if self.definition.display_size:
            attrs.append(f'size="{self.definition.display_size}"')
        if self.definition.max_chars:
            attrs.append(f'maxlength="{self.definition.max_chars}"')
        return f"<input {' '.join(attrs)}>"


class LongText(Text):
    """Multi-line text rendered as paragraphs and edited in a textarea."""

    kind = "long_text"

    def html_display(self) -> str:
        text = self.text_display().strip()
        if not text:
            return "<I>none</I>"
        paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]
        return "\n".join(f"<p>{html_escape(p)}</p>" for p in paragraphs)

    def html_form_field(self) -> str:
        return (
            f'<textarea name="{html_escape(self.name)}" rows="{self.definition.rows}" '
            f'cols="{self.definition.cols}">{self.value_html()}</textarea>'
        )


class ForeignKeyReference(Text):
    """Text holding the primary key of a row in another table."""

    kind = "foreign_key"

    @property
    def foreign(self) -> Any:
        return self.definition.foreign_class()

    def record(self) -> Optional["Record"]:
        """Load the referenced record, or None when the key is empty or unknown."""
        if not has_content(self.text_display()):
            return None
        return self.foreign.load(self.login, self.value)

    def validate(self, record: Optional["Record"], errors: ErrorList) -> bool:
        if not super().validate(record, errors):
            return False
        if not has_content(self.text_display()):
            return True
        foreign = self.foreign
        login = record.login if record is not None else self.login
        try:
            found = foreign.key_exists(login, self.value)
        except StorageError as exc:
            logger.warning(f"[FIELD CHECK FAILED] {self.name}", extra={"error": str(exc)})
            return errors.add_storage_error(exc)
        if not found:
            return errors.add(
                text=f'Do not find primary key {self.value} in table "{foreign.schema.name}"'
            )
        return True

    def html_form_field(self) -> str:
        if self.definition.locked:
            return f"{self.html_hidden()}{self.value_html()}"
        return super().html_form_field()


class Boolean(Field):
    """Yes/no value held as 0 or 1."""

    kind = "boolean"

    def _parse(self, value: Any) -> int:
        if not value:
            return 0
        word = crunch(str(value)).lower()
        if self.definition.long_zero and _LONG_ZERO.match(word):
            return 0
        reps = self.definition.true_false_reps
        if word in reps:
            return reps[word]
        return 1 if word else 0

    def normalize(self, value: Any) -> int:
        return self._parse(value)

    def set_from_storage(self, value: Any) -> None:
        for flag, stored in self.definition.output_db.items():
            if value == stored and type(value) is type(stored):
                self.value = flag
                return
        self.value = self._parse(value)

    @property
    def flag(self) -> int:
        return 1 if self.value else 0

    def to_storage(self) -> Any:
        return self.definition.output_db.get(self.flag, self.flag)

    def text_display(self) -> str:
        return str(self.definition.output_interface.get(self.flag, self.flag))

    def html_display(self) -> str:
        images = self.definition.html_img
        if images and self.flag in images:
            return f'<img src="{html_escape(images[self.flag])}" alt="{self.value_html()}">'
        return self.value_html()

    def html_form_field(self) -> str:
        checked = " checked" if self.flag else ""
        return f'<input type="checkbox" name="{html_escape(self.name)}" value="1"{checked}>'

    def validate(self, record: Optional["Record"], errors: ErrorList) -> bool:
        return True


class SingleChoice(Field):
    """One value picked from inline options or from another table."""

    kind = "choice"

    def normalize(self, value: Any) -> str:
        return crunch(value)

    def option_pairs(self) -> List[Tuple[Any, str]]:
        """Return ``(value, label)`` pairs, raising when none are declared."""
        definition = self.definition
        if definition.options is not None:
            return list(definition.options)
        if definition.foreign is not None:
            return definition.foreign_class().display_set(self.login)
        raise ConfigurationError(f"Field {self.name!r} needs either options or a foreign table")

    def _label_for(self, value: Any) -> Optional[str]:
        wanted = str(value)
        for option, label in self.option_pairs():
            if str(option) == wanted:
                return label
        return None

    def text_display(self) -> str:
        if not has_content(self.value):
            return ""
        if self.definition.options is None and self.definition.foreign is not None:
            label = self.definition.foreign_class().display_record_str(self.login, self.value)
        else:
            label = self._label_for(self.value)
        return str(self.value) if label is None else str(label)

    def to_storage(self) -> Any:
        return self.value

    def validate(self, record: Optional["Record"], errors: ErrorList) -> bool:
        if not has_content(self.value):
            if self.required:
                return errors.add(text=f"{self.desc_short} is a required field")
            return True
        try:
            known = self._label_for(self.value) is not None
        except StorageError as exc:
            return errors.add_storage_error(exc)
        if not known:
            return errors.add(
                text=f'"{self.value}" is not a valid option for the "{self.desc_short}" field'
            )
        return True

    def _is_selected(self, option: Any) -> bool:
        return has_content(self.value) and str(option) == str(self.value)

    def html_form_field(self) -> str:
        lines = [f'<select name="{html_escape(self.name)}">']
        if self.definition.undef_display is not None or not has_content(self.value):
            prompt = self.definition.undef_display or ""
            lines.append(f'<option value="">{html_escape(prompt)}</option>')
        for option, label in self.option_pairs():
            selected = " selected" if self._is_selected(option) else ""
            lines.append(
                f'<option value="{html_escape(option)}"{selected}>{html_escape(label)}</option>'
            )
        lines.append("</select>")
        return "\n".join(lines)


class Radio(SingleChoice):
    """A single choice presented as radio buttons."""

    kind = "radio"

    def html_form_field(self) -> str:
        buttons = []
        for option, label in self.option_pairs():
            checked = " checked" if self._is_selected(option) else ""
            buttons.append(
                f'<input type="radio" name="{html_escape(self.name)}" '
                f'value="{html_escape(option)}"{checked}> {html_escape(label)}'
            )
        return "<br>\n".join(buttons)


FIELD_TYPES: Dict[str, Type[Field]] = {
    Text.kind: Text,
    LongText.kind: LongText,
    ForeignKeyReference.kind: ForeignKeyReference,
    Boolean.kind: Boolean,
    SingleChoice.kind: SingleChoice,
    Radio.kind: Radio,
}


def build_field(name: str, definition: FieldDef, login: Any = None) -> Field:
    """Instantiate the field class registered for ``definition.kind``."""
    try:
        field_cls = FIELD_TYPES[definition.kind]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown field kind: {definition.kind!r}") from exc
    return field_cls(name, definition, login)


__all__ = [
    "FIELD_TYPES",
    "Boolean",
    "Field",
    "ForeignKeyReference",
    "LongText",
    "Radio",
    "SingleChoice",
    "Text",
    "build_field",
]
