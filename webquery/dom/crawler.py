"""HTML/XML document querying on top of lxml.

This module provides:
1. QueryOptions - parse options (encoding, html/xml/auto mode, XML parser options)
2. Crawler - wrapper around a list of lxml nodes with markup and text helpers

Usage:
    crawler = Crawler.query("<ul><li>a</li><li>b <b>c</b></li></ul>")
    crawler.filter("li").last().xml()          # 'b <b>c</b>'
    crawler.filter("li").last().outer_xml()    # '<li>b <b>c</b></li>'
    crawler.filter("li").last().direct_texts()  # ['b']
"""

import codecs
import copy
import logging
import re
from typing import Any, Iterable, Iterator, Literal, Mapping
from xml.sax.saxutils import escape

from cssselect import GenericTranslator, HTMLTranslator
from lxml import etree
from lxml import html as lxml_html
from pydantic import BaseModel, ConfigDict, Field

from ..errors import EmptyNodeListError

logger = logging.getLogger(__name__)


# Whitespace handling follows the DOM crawler convention: runs of blanks and
# any single line break, tab or form feed collapse to one space.
WHITESPACE_RE = re.compile(r"(?:[ \n\r\t\x0c]{2,}|[\n\r\t\x0c])")
WHITESPACE_CHARS = " \n\r\t\x0c"

META_CHARSET_RE = re.compile(
    rb"""<meta[^>]+charset *= *["']?([a-zA-Z\-0-9_:.]+)""", re.IGNORECASE
)
XML_DECLARATION = b"<?xml"
PREFIXED_NAMESPACE = b"xmlns:"
DEFAULT_NAMESPACE_RE = re.compile(rb"\sxmlns(?=\s*=)")

_html_translator = HTMLTranslator()
_xml_translator = GenericTranslator()


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs and line breaks to single spaces and trim."""
    return WHITESPACE_RE.sub(" ", text).strip(WHITESPACE_CHARS)


def _is_element(node: Any) -> bool:
    # Comments, processing instructions and entities have a non-string tag
    return isinstance(node, etree._Element) and isinstance(node.tag, str)


def _expand_empty_tags(node: etree._Element) -> etree._Element:
    """Copy of a subtree where empty elements serialize as <a></a>."""
    expanded = copy.deepcopy(node)
    for element in expanded.iter():
        if isinstance(element.tag, str) and element.text is None and len(element) == 0:
            element.text = ""
    return expanded


class QueryOptions(BaseModel):
    """Options controlling how content is parsed."""

    model_config = ConfigDict(extra="forbid")

    encoding: str = "UTF-8"
    mode: Literal["auto", "html", "xml"] = "auto"
    # Keyword arguments for lxml.etree.XMLParser; no network access by default
    parser_options: dict[str, Any] = Field(
        default_factory=lambda: {"no_network": True}
    )

    @classmethod
    def build(
        cls,
        options: "QueryOptions | Mapping[str, Any] | None" = None,
        **overrides: Any,
    ) -> "QueryOptions":
        """Merge options and keyword overrides over the defaults."""
        if isinstance(options, QueryOptions):
            values = options.model_dump()
        else:
            values = dict(options or {})
        values.update(overrides)
        return cls(**values)


class Crawler:
    """List of lxml nodes with query, serialization and text helpers.

    Operations that read "the node" always use the first node of the list.
    Navigation methods return new crawlers sharing the same options.
    """

    def __init__(
        self,
        nodes: Iterable[etree._Element] | etree._Element | None = None,
        options: QueryOptions | None = None,
    ):
        if nodes is None:
            self._nodes: list[etree._Element] = []
        elif isinstance(nodes, etree._Element):
            self._nodes = [nodes]
        else:
            self._nodes = list(nodes)
        self.options = options or QueryOptions()

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def query(
        cls,
        content: Any,
        options: QueryOptions | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> "Crawler":
        """Load HTML or XML content for querying.

        Args:
            content: Markup as str or bytes, or lxml node(s) to wrap directly
            options: QueryOptions or mapping with encoding, mode and parser_options
            **overrides: Individual option values taking precedence over options

        Returns:
            Crawler wrapping the document element
        """
        opts = QueryOptions.build(options, **overrides)

        if content is None:
            return cls(options=opts)
        if isinstance(content, etree._Element):
            return cls([content], opts)
        if not isinstance(content, (str, bytes)):
            return cls(content, opts)

        if opts.mode == "xml":
            root = cls._parse_xml(content, opts.encoding, opts.parser_options)
        elif opts.mode == "html":
            root = cls._parse_html(content, opts.encoding)
        else:
            root = cls._parse_auto(content, opts)

        return cls([root], opts)

    @classmethod
    def query_html(cls, content: Any, encoding: str = "UTF-8") -> "Crawler":
        """Load HTML content for querying."""
        return cls.query(content, encoding=encoding, mode="html")

    @classmethod
    def query_xml(
        cls,
        content: Any,
        encoding: str = "UTF-8",
        parser_options: Mapping[str, Any] | None = None,
    ) -> "Crawler":
        """Load XML content for querying.

        Args:
            content: XML content
            encoding: Content encoding
            parser_options: lxml XMLParser options (no network access by default)
        """
        overrides: dict[str, Any] = {"encoding": encoding, "mode": "xml"}
        if parser_options is not None:
            overrides["parser_options"] = dict(parser_options)
        return cls.query(content, **overrides)

    @staticmethod
    def _to_bytes(content: str | bytes, encoding: str) -> bytes:
        # Characters the encoding cannot represent raise UnicodeEncodeError
        if isinstance(content, bytes):
            return content
        return content.encode(encoding)

    @staticmethod
    def _strip_default_namespace(data: bytes) -> bytes:
        """Rename a lone default xmlns so plain CSS selectors match."""
        if PREFIXED_NAMESPACE in data:
            return data
        return DEFAULT_NAMESPACE_RE.sub(b" ns", data)

    @classmethod
    def _parse_xml(
        cls,
        content: str | bytes,
        encoding: str | None,
        parser_options: Mapping[str, Any],
    ) -> etree._Element:
        """Parse XML; with encoding None the document's own declaration is used."""
        kwargs = {"strip_cdata": False, **parser_options}
        if encoding is not None:
            kwargs["encoding"] = encoding
            content = cls._to_bytes(content, encoding)
        parser = etree.XMLParser(**kwargs)
        logger.debug(f"Parsing XML ({encoding or 'declared encoding'})")
        return etree.fromstring(cls._strip_default_namespace(content), parser)

    @classmethod
    def _parse_html(cls, content: str | bytes, encoding: str) -> etree._Element:
        parser = lxml_html.HTMLParser(encoding=encoding)
        logger.debug(f"Parsing HTML ({encoding})")
        return lxml_html.document_fromstring(
            cls._to_bytes(content, encoding), parser=parser
        )

    @staticmethod
    def _sniff_charset(data: bytes, fallback: str) -> str:
        """Charset from a <meta> declaration, or fallback if absent or unknown."""
        match = META_CHARSET_RE.search(data)
        if not match:
            return fallback
        charset = match.group(1).decode("ascii")
        try:
            codecs.lookup(charset)
        except LookupError:
            logger.debug(f"Unknown meta charset {charset!r}, using {fallback}")
            return fallback
        return charset

    @classmethod
    def _parse_auto(cls, content: str | bytes, opts: QueryOptions) -> etree._Element:
        data = cls._to_bytes(content, opts.encoding)
        head = data.lstrip(b"\xef\xbb\xbf").lstrip()

        if head.startswith(XML_DECLARATION):
            # the declaration must be the very first thing the XML parser sees;
            # undecoded bytes are read with the encoding it declares
            encoding = opts.encoding if isinstance(content, str) else None
            return cls._parse_xml(head, encoding, opts.parser_options)

        # str content is already decoded, so a <meta> charset only matters for bytes
        if isinstance(content, str):
            return cls._parse_html(data, opts.encoding)
        return cls._parse_html(data, cls._sniff_charset(data, opts.encoding))

    # =========================================================================
    # Node list
    # =========================================================================

    @property
    def nodes(self) -> list[etree._Element]:
        """Copy of the wrapped node list."""
        return list(self._nodes)

    def get_node(self, position: int) -> etree._Element | None:
        """Node at a position, or None."""
        try:
            return self._nodes[position]
        except IndexError:
            return None

    def count(self) -> int:
        return len(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator["Crawler"]:
        for node in self._nodes:
            yield self._create([node])

    def __repr__(self) -> str:
        return f"<Crawler nodes={len(self._nodes)} mode={self.options.mode}>"

    def _create(self, nodes: Iterable[etree._Element]) -> "Crawler":
        return type(self)(nodes, self.options)

    def _first_or_raise(self) -> etree._Element:
        if not self._nodes:
            raise EmptyNodeListError()
        return self._nodes[0]

    # =========================================================================
    # Navigation
    # =========================================================================

    def eq(self, position: int) -> "Crawler":
        """Crawler holding only the node at a position (empty if out of range)."""
        node = self.get_node(position)
        return self._create([] if node is None else [node])

    def first(self) -> "Crawler":
        return self.eq(0)

    def last(self) -> "Crawler":
        return self.eq(-1)

    def children(self) -> "Crawler":
        """Element children of the first node."""
        node = self._first_or_raise()
        return self._create(child for child in node if _is_element(child))

    def filter_xpath(self, xpath: str) -> "Crawler":
        """Evaluate an XPath expression relative to each node.

        Non-node results (strings, numbers) are dropped and duplicates removed.
        """
        found: list[etree._Element] = []
        for node in self._nodes:
            result = node.xpath(xpath)
            if not isinstance(result, list):
                continue
            for item in result:
                if isinstance(item, etree._Element) and item not in found:
                    found.append(item)
        return self._create(found)

    def filter(self, selector: str) -> "Crawler":
        """Select nodes matching a CSS selector, each node included."""
        is_html = bool(self._nodes) and isinstance(self._nodes[0], lxml_html.HtmlElement)
        translator = _html_translator if is_html else _xml_translator
        xpath = translator.css_to_xpath(selector, prefix="descendant-or-self::")
        return self.filter_xpath(xpath)

    # =========================================================================
    # Content
    # =========================================================================

    def text(
        self, default: str | None = None, normalize_whitespace: bool = True
    ) -> str:
        """Text content of the first node.

        Raises:
            EmptyNodeListError: If the list is empty and no default is given
        """
        if not self._nodes:
            if default is not None:
                return default
            raise EmptyNodeListError()

        content = "".join(self._nodes[0].itertext())
        return collapse_whitespace(content) if normalize_whitespace else content

    def attr(self, name: str, default: str | None = None) -> str | None:
        """Attribute value of the first node, or default when missing."""
        if not self._nodes:
            if default is not None:
                return default
            raise EmptyNodeListError()

        return self._nodes[0].get(name, default)

    def html(self, default: str | None = None) -> str:
        """Inner HTML of the first node."""
        if not self._nodes:
            if default is not None:
                return default
            raise EmptyNodeListError()

        node = self._nodes[0]
        parts = [escape(node.text)] if _is_element(node) and node.text else []
        for child in node:
            parts.append(
                lxml_html.tostring(child, encoding="unicode", with_tail=True)
            )
        return "".join(parts)

    def xml(self, default: str | None = None, no_empty_tags: bool = False) -> str:
        """Markup of every child node of the first node, without its own tag.

        Args:
            default: Returned instead of raising when the node list is empty
            no_empty_tags: Write empty elements as <a></a> instead of <a/>

        Raises:
            EmptyNodeListError: If the list is empty and no default is given
        """
        if not self._nodes:
            if default is not None:
                return default
            raise EmptyNodeListError()

        node = self._nodes[0]
        if not _is_element(node):
            return ""
        if no_empty_tags:
            node = _expand_empty_tags(node)

        parts = [escape(node.text)] if node.text else []
        for child in node:
            parts.append(etree.tostring(child, encoding="unicode", with_tail=True))
        return "".join(parts)

    def outer_xml(self, no_empty_tags: bool = False) -> str:
        """Markup of the first node including its own tag.

        Raises:
            EmptyNodeListError: If the node list is empty
        """
        node = self._first_or_raise()
        if no_empty_tags:
            node = _expand_empty_tags(node)
        return etree.tostring(node, encoding="unicode", with_tail=False)

    def direct_texts(self, normalize_whitespace: bool = True) -> list[str]:
        """Text and CDATA children of the first node, in document order.

        Only direct children are read; text inside child elements is ignored.
        Unlike xml() and outer_xml() this does not check for an empty list.

        lxml merges adjacent text and CDATA sections into one text slot, so
        <r>x<![CDATA[y]]></r> gives a single segment "xy", not two.

        Args:
            normalize_whitespace: Collapse whitespace and drop blank segments
        """
        node = self._nodes[0]
        if not _is_element(node):
            return []

        segments = [node.text] if node.text is not None else []
        segments.extend(child.tail for child in node if child.tail is not None)

        if not normalize_whitespace:
            return segments

        normalized = (collapse_whitespace(s) for s in segments)
        return [s for s in normalized if s]
