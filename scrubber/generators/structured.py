import json
from html import escape
from typing import Any

from scrubber.generators.base import FakerGenerator, int_option


class JsonGenerator(FakerGenerator):
    """JSON documents, either from a ``schema`` of ``{key: {"type": ...}}`` or random."""

    _LEAF_TYPES = ("string", "number", "boolean", "array", "object")

    def generate(self, options: dict[str, Any]) -> str:
        depth = int_option(options, "depth", 2)
        schema = options.get("schema")
        if isinstance(schema, dict):
            data = self._from_schema(schema, depth)
        else:
            data = self._random_structure(depth, int_option(options, "max_items", 5))
        return json.dumps(data)

    def _from_schema(self, schema: dict[str, Any], depth: int) -> dict[str, Any]:
        if depth <= 0:
            return {}
        data: dict[str, Any] = {}
        for key, spec in schema.items():
            if isinstance(spec, dict) and "type" in spec:
                data[key] = self._value_of_type(str(spec["type"]), depth - 1)
            elif isinstance(spec, dict):
                data[key] = self._from_schema(spec, depth - 1)
            else:
                data[key] = self._faker.word()
        return data

    def _random_structure(self, depth: int, max_items: int) -> dict[str, Any]:
        if depth <= 0:
            return {"value": self._faker.word()}
        structure: dict[str, Any] = {}
        for _ in range(self._faker.random_int(1, max(1, max_items))):
            kind = self._faker.random_element(self._LEAF_TYPES)
            structure[self._faker.word()] = (
                self._random_structure(depth - 1, max_items)
                if kind == "object"
                else self._value_of_type(kind, depth - 1)
            )
        return structure

    def _value_of_type(self, kind: str, depth: int) -> Any:
        if kind == "string":
            return self._faker.sentence()
        if kind in ("number", "integer"):
            return self._faker.random_int(0, 1000)
        if kind == "float":
            return round(self._faker.random.uniform(0, 1000), 2)
        if kind == "boolean":
            return self._faker.boolean()
        if kind == "array":
            return self._faker.words(nb=self._faker.random_int(1, 3))
        if kind == "object":
            return self._random_structure(depth, 3) if depth > 0 else {}
        return self._faker.word()


class TextGenerator(FakerGenerator):
    def generate(self, options: dict[str, Any]) -> str:
        low = int_option(options, "min_words", 5)
        high = int_option(options, "max_words", 20)
        size = self._faker.random_int(min(low, high), high)
        if options.get("type", "sentence") == "paragraph":
            return self._faker.paragraph(nb_sentences=max(1, size // 5))
        return self._faker.sentence(nb_words=size)


class HtmlGenerator(FakerGenerator):
    """HTML fragments: an e-mail ``signature`` (default), ``paragraph`` blocks or a ``list``."""

    def generate(self, options: dict[str, Any]) -> str:
        kind = options.get("type", "signature")
        links = bool(options.get("include_links", True))
        if kind == "paragraph":
            return self._paragraphs(
                int_option(options, "min_paragraphs", 1),
                int_option(options, "max_paragraphs", 3),
                links,
            )
        if kind == "list":
            return self._list(
                int_option(options, "min_list_items", 2),
                int_option(options, "max_list_items", 5),
                links,
            )
        return self._signature(links, bool(options.get("include_styles", False)))

    def _signature(self, links: bool, styles: bool) -> str:
        name = escape(self._faker.name())
        title = escape(self._faker.job())
        company = escape(self._faker.company())
        phone = escape(self._faker.phone_number())
        email = escape(self._faker.safe_email())
        website = escape(self._faker.url())

        style = ' style="font-family: Arial, sans-serif; font-size: 12px; color: #333;"' if styles else ""
        parts = [f"<div{style}>", f"<p><strong>{name}</strong><br>{title}<br>{company}</p>", "<p>"]
        if links:
            parts.append(f'Phone: <a href="tel:{phone}">{phone}</a><br>')
            parts.append(f'Email: <a href="mailto:{email}">{email}</a><br>')
            parts.append(f'Website: <a href="{website}">{website}</a>')
        else:
            parts.append(f"Phone: {phone}<br>Email: {email}<br>Website: {website}")
        parts.append("</p></div>")
        return "".join(parts)

    def _paragraphs(self, low: int, high: int, links: bool) -> str:
        html = []
        for _ in range(self._faker.random_int(min(low, high), high)):
            words = [escape(word) for word in self._faker.paragraph(nb_sentences=3).split(" ")]
            if links and self._faker.boolean(30):
                index = self._faker.random_int(0, len(words) - 1)
                words[index] = f'<a href="{escape(self._faker.url())}">{words[index]}</a>'
            html.append(f"<p>{' '.join(words)}</p>")
        return "".join(html)

    def _list(self, low: int, high: int, links: bool) -> str:
        tag = self._faker.random_element(("ul", "ol"))
        items = []
        for _ in range(self._faker.random_int(min(low, high), high)):
            text = escape(self._faker.sentence(nb_words=4))
            if links and self._faker.boolean(40):
                text = f'<a href="{escape(self._faker.url())}">{text}</a>'
            items.append(f"<li>{text}</li>")
        return f"<{tag}>{''.join(items)}</{tag}>"
