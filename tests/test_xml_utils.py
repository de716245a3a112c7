"""Tests for the POM/metadata accessors."""

import pytest

from common import xml_utils
from common.digest import digest_bytes, parse_sidecar
from common.logging_utils import extra_context, safe_url
from errors import MalformedDescriptorError

POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <groupId> org.example </groupId>
  <artifactId>lib</artifactId>
  <version></version>
  <properties>
    <lib.version>1.0</lib.version>
    <empty/>
  </properties>
  <dependencies>
    <dependency><artifactId>a</artifactId></dependency>
    <dependency><artifactId>b</artifactId></dependency>
  </dependencies>
</project>
"""


class TestAccessors:
    """Namespace-free element access."""

    def test_namespaces_are_stripped(self):
        root = xml_utils.root_element(POM, "project")
        assert root.tag == "project"
        assert xml_utils.get_element(root, "groupId") == "org.example"

    def test_empty_element_is_none(self):
        root = xml_utils.root_element(POM, "project")
        assert xml_utils.get_element(root, "version") is None
        assert xml_utils.get_element(root, "missing") is None
        assert xml_utils.get_element(None, "groupId") is None

    def test_elements_in_document_order(self):
        root = xml_utils.root_element(POM, "project")
        nodes = xml_utils.get_elements(root, "dependencies/dependency")
        assert [xml_utils.get_element(n, "artifactId") for n in nodes] == ["a", "b"]
        assert xml_utils.get_element(xml_utils.last_element(nodes), "artifactId") == "b"
        assert xml_utils.last_element([]) is None

    def test_properties(self):
        root = xml_utils.root_element(POM, "project")
        assert xml_utils.properties(root) == {"lib.version": "1.0"}

    def test_wrong_root(self):
        with pytest.raises(MalformedDescriptorError):
            xml_utils.root_element("<metadata/>", "project")

    def test_not_xml(self):
        with pytest.raises(MalformedDescriptorError):
            xml_utils.root_element("<html><body>502 Bad Gateway", "project")


class TestHelpers:
    """Digest and logging helpers."""

    def test_digest_bytes(self):
        assert digest_bytes(b"abc", "SHA-1") == "a9993e364706816aba3e25717850c26c9cd0d89d"

    @pytest.mark.parametrize("text,expected", [
        ("ABCDEF  lib-1.0.jar\n", "abcdef"), ("abc", "abc"), ("  \n", ""), ("", ""),
    ])
    def test_parse_sidecar(self, text, expected):
        assert parse_sidecar(text) == expected

    def test_safe_url_strips_credentials_and_query(self):
        assert safe_url("https://user:pw@repo.test:8443/a/b?token=x#frag") == "https://repo.test:8443/a/b"
        assert safe_url(None) == ""

    def test_extra_context_drops_none(self):
        assert extra_context(a=1, b=None) == {"a": 1}
