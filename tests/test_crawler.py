"""
Unit tests for Crawler loading, markup serialization and text extraction.
"""
import pytest
from lxml import etree
from pydantic import ValidationError

from webquery.dom.crawler import Crawler, QueryOptions, collapse_whitespace
from webquery.errors import EmptyNodeListError

HTML_DOC = (
    "<html><head><title>Shop</title></head><body>"
    '<ul id="items"><li class="item">a</li><li class="item">b <b>c</b></li></ul>'
    "</body></html>"
)
XML_DOC = '<?xml version="1.0" encoding="UTF-8"?><root><a>1</a>text<b/></root>'


class TestQueryOptions:
    """Tests for option merging."""

    def test_defaults(self):
        options = QueryOptions()

        assert options.encoding == "UTF-8"
        assert options.mode == "auto"
        assert options.parser_options == {"no_network": True}

    def test_overrides_win_over_mapping(self):
        options = QueryOptions.build({"mode": "xml", "encoding": "UTF-16"}, mode="html")

        assert options.mode == "html"
        assert options.encoding == "UTF-16"

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValidationError):
            QueryOptions(mode="json")


class TestLoading:
    """Tests for HTML/XML loading."""

    def test_auto_detects_html(self):
        crawler = Crawler.query(HTML_DOC)

        assert len(crawler) == 1
        assert crawler.nodes[0].tag == "html"
        assert crawler.options.mode == "auto"

    def test_auto_detects_xml_declaration(self):
        crawler = Crawler.query("\n  " + XML_DOC)

        assert crawler.nodes[0].tag == "root"

    def test_html_and_auto_produce_same_tree(self):
        explicit = Crawler.query(HTML_DOC, {"mode": "html"})
        detected = Crawler.query(HTML_DOC, {"mode": "auto"})

        assert explicit.outer_xml() == detected.outer_xml()

    def test_query_html_wraps_fragment_in_document(self):
        crawler = Crawler.query_html("<p>Hi</p>")

        assert crawler.nodes[0].tag == "html"
        assert crawler.filter("p").text() == "Hi"

    def test_query_xml_with_declared_encoding_in_str(self):
        crawler = Crawler.query_xml(XML_DOC)

        assert crawler.options.mode == "xml"
        assert crawler.nodes[0].tag == "root"

    def test_query_xml_parser_options(self):
        crawler = Crawler.query_xml("<r><!-- note --><a/></r>", parser_options={"remove_comments": True})

        assert crawler.xml() == "<a/>"

    def test_invalid_xml_propagates_parser_error(self):
        with pytest.raises(etree.XMLSyntaxError):
            Crawler.query_xml("<root><unclosed></root>")

    def test_auto_xml_bytes_use_declared_encoding(self):
        content = '<?xml version="1.0" encoding="ISO-8859-1"?><r>caf\xe9</r>'.encode("latin-1")

        crawler = Crawler.query(content)

        assert crawler.nodes[0].tag == "r"
        assert crawler.text() == "caf\xe9"

    @pytest.mark.parametrize(
        "content",
        [
            '<html><head><meta charset="x-bogus"></head><body><p>hi</p></body></html>',
            b'<html><head><meta charset="x-bogus"></head><body><p>hi</p></body></html>',
        ],
    )
    def test_unknown_meta_charset_falls_back(self, content):
        assert Crawler.query(content).filter("p").text() == "hi"

    def test_unencodable_str_raises(self):
        with pytest.raises(UnicodeEncodeError):
            Crawler.query_xml("<r>€</r>", encoding="ISO-8859-1")

    def test_default_namespace_does_not_block_selectors(self):
        sitemap = (
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<url><loc>https://example.com/a</loc></url>"
            "<url><loc>https://example.com/b</loc></url>"
            "</urlset>"
        )

        for crawler in (Crawler.query_xml(sitemap), Crawler.query(sitemap)):
            locs = crawler.filter("url loc")
            assert [loc.text() for loc in locs] == [
                "https://example.com/a",
                "https://example.com/b",
            ]

    def test_prefixed_namespaces_kept(self):
        crawler = Crawler.query_xml('<feed xmlns="urn:atom" xmlns:m="urn:m"><m:x/></feed>')

        assert crawler.nodes[0].tag == "{urn:atom}feed"

    def test_meta_charset_used_in_auto_mode(self):
        content = (
            '<html><head><meta charset="iso-8859-1"></head>'
            "<body><p>caf\xe9</p></body></html>"
        ).encode("latin-1")

        assert Crawler.query(content).filter("p").text() == "caf\xe9"

    def test_wraps_existing_element(self):
        element = etree.fromstring("<root><a/></root>")

        crawler = Crawler.query(element)

        assert crawler.nodes == [element]

    def test_none_gives_empty_crawler(self):
        assert len(Crawler.query(None)) == 0


class TestNavigation:
    """Tests for filtering and positional access."""

    def test_filter_css(self):
        items = Crawler.query(HTML_DOC).filter("li.item")

        assert items.count() == 2
        assert [item.text() for item in items] == ["a", "b c"]

    def test_filter_includes_current_node(self):
        ul = Crawler.query(HTML_DOC).filter("ul")

        assert ul.filter("ul#items").count() == 1

    def test_filter_xpath_drops_non_nodes(self):
        crawler = Crawler.query_xml("<root><a>1</a><a>2</a></root>")

        assert crawler.filter_xpath("a").count() == 2
        assert crawler.filter_xpath("a/text()").count() == 0

    def test_eq_out_of_range_is_empty(self):
        assert len(Crawler.query(HTML_DOC).eq(5)) == 0

    def test_first_last_children(self):
        crawler = Crawler.query_xml("<root><a/><!-- c --><b/></root>")

        children = crawler.children()
        assert [n.tag for n in children.nodes] == ["a", "b"]
        assert children.first().nodes[0].tag == "a"
        assert children.last().nodes[0].tag == "b"

    def test_attr_and_default(self):
        li = Crawler.query(HTML_DOC).filter("li").first()

        assert li.attr("class") == "item"
        assert li.attr("id") is None
        assert li.attr("id", "none") == "none"

    def test_text_on_empty_list(self):
        empty = Crawler.query(HTML_DOC).filter("table")

        assert empty.text("n/a") == "n/a"
        with pytest.raises(EmptyNodeListError):
            empty.text()

    def test_html_inner(self):
        li = Crawler.query(HTML_DOC).filter("li").last()

        assert li.html() == "b <b>c</b>"


class TestMarkup:
    """Tests for xml() and outer_xml()."""

    def test_xml_is_children_markup(self):
        assert Crawler.query_xml(XML_DOC).xml() == "<a>1</a>text<b/>"

    def test_xml_on_html_selection(self):
        li = Crawler.query(HTML_DOC).filter("li").last()

        assert li.xml() == "b <b>c</b>"

    def test_xml_escapes_leading_text(self):
        assert Crawler.query_xml("<r>a &amp; b<c/></r>").xml() == "a &amp; b<c/>"

    def test_xml_without_children(self):
        assert Crawler.query_xml("<root/>").xml() == ""

    def test_xml_no_empty_tags(self):
        crawler = Crawler.query_xml(XML_DOC)

        assert crawler.xml(no_empty_tags=True) == "<a>1</a>text<b></b>"
        # the tree itself is untouched
        assert crawler.xml() == "<a>1</a>text<b/>"

    def test_outer_xml(self):
        assert Crawler.query_xml(XML_DOC).outer_xml() == "<root><a>1</a>text<b/></root>"

    def test_outer_xml_excludes_tail(self):
        a = Crawler.query_xml(XML_DOC).filter_xpath("a")

        assert a.outer_xml() == "<a>1</a>"

    def test_outer_xml_no_empty_tags(self):
        assert Crawler.query_xml("<root><e/></root>").outer_xml(no_empty_tags=True) == (
            "<root><e></e></root>"
        )

    def test_outer_xml_keeps_cdata(self):
        crawler = Crawler.query_xml("<r><![CDATA[<b>raw</b>]]></r>")

        assert crawler.outer_xml() == "<r><![CDATA[<b>raw</b>]]></r>"

    def test_xml_matches_children_outer_xml(self):
        crawler = Crawler.query_xml("<root><a>1</a><b><c/></b><d x='1'/></root>")

        joined = "".join(child.outer_xml() for child in crawler.children())
        assert crawler.xml() == joined

    def test_outer_xml_round_trip(self):
        crawler = Crawler.query_xml('<root xmlns:p="urn:p"><p:a k="v">1</p:a><b/></root>')
        markup = crawler.outer_xml()

        assert Crawler.query_xml(markup).outer_xml() == markup

    def test_xml_empty_list_default(self):
        empty = Crawler.query_xml(XML_DOC).filter_xpath("missing")

        assert empty.xml(default="X") == "X"

    def test_xml_empty_list_raises(self):
        empty = Crawler.query_xml(XML_DOC).filter_xpath("missing")

        with pytest.raises(EmptyNodeListError, match="The current node list is empty."):
            empty.xml()

    def test_outer_xml_empty_list_raises(self):
        with pytest.raises(EmptyNodeListError):
            Crawler().outer_xml()

    def test_empty_node_list_error_is_value_error(self):
        with pytest.raises(ValueError):
            Crawler().xml()


class TestDirectTexts:
    """Tests for direct_texts()."""

    CONTENT = "<p>  a \n b  <el>ignored</el>c\t\td</p>"

    def test_normalized(self):
        assert Crawler.query_xml(self.CONTENT).direct_texts() == ["a b", "c d"]

    def test_raw(self):
        crawler = Crawler.query_xml(self.CONTENT)

        assert crawler.direct_texts(False) == ["  a \n b  ", "c\t\td"]

    def test_blank_segments(self):
        crawler = Crawler.query_xml("<p> <x/>\n\t<y/>z</p>")

        assert crawler.direct_texts() == ["z"]
        assert crawler.direct_texts(normalize_whitespace=False) == [" ", "\n\t", "z"]

    def test_text_around_comments(self):
        assert Crawler.query_xml("<r>a<!-- c -->b</r>").direct_texts() == ["a", "b"]

    def test_cdata_included(self):
        crawler = Crawler.query_xml("<r><![CDATA[<b>raw</b>]]></r>")

        assert crawler.direct_texts() == ["<b>raw</b>"]

    def test_no_text_children(self):
        assert Crawler.query_xml("<r><a>deep</a></r>").direct_texts() == []

    def test_adjacent_text_and_cdata_form_one_segment(self):
        crawler = Crawler.query_xml("<r>x<![CDATA[y]]></r>")

        assert crawler.direct_texts() == ["xy"]

    def test_empty_list_does_not_raise_empty_node_list_error(self):
        with pytest.raises(IndexError):
            Crawler().direct_texts()


class TestCollapseWhitespace:
    """Tests for whitespace normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  a \n b  ", "a b"),
            ("c\t\td", "c d"),
            ("x\ny", "x y"),
            ("x\fy", "x y"),
            ("  \r\n ", ""),
            ("keep single spaces", "keep single spaces"),
        ],
    )
    def test_collapse(self, raw, expected):
        assert collapse_whitespace(raw) == expected
