"""Unit tests for permission.py — parsing, modifiers, matching and serialisation."""
from __future__ import annotations

import pytest

from urlperm.exceptions import (
    InvalidAttributeError,
    MalformedPermissionError,
    UnknownPrivilegeError,
)
from urlperm.permission import Permission, normalize_attributes, parse_attributes
from urlperm.privileges import PrivilegeSet


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParse:
    def test_basic_permission(self) -> None:
        perm = Permission.parse("/articles/article-1:read,update")
        assert perm.path == "/articles/article-1"
        assert perm.attributes is None
        assert perm.privileges.identifiers == ["r", "u"]

    def test_alias(self) -> None:
        perm = Permission.parse("/articles/article-1:all")
        assert perm.privileges.identifiers == ["c", "r", "u", "d"]

    def test_mixed_identifiers_and_names(self) -> None:
        perm = Permission.parse("/articles/article-1:ru,c,delete")
        assert perm.privileges.identifiers == ["c", "r", "u", "d"]

    def test_attributes_split_on_rightmost_colon(self) -> None:
        perm = Permission.parse("/articles/article-1?attr1=test,test2&attr2=#@%();::read")
        assert perm.attributes == {"attr1": ("test", "test2"), "attr2": ("#@%();:",)}
        assert perm.privileges.identifiers == ["r"]

    def test_url_with_scheme(self) -> None:
        perm = Permission.parse("https://examp.le/articles:r")
        assert perm.path == "https://examp.le/articles"

    def test_not_a_string(self) -> None:
        with pytest.raises(MalformedPermissionError, match="Permission must be a string"):
            Permission.parse(False)  # type: ignore[arg-type]

    def test_missing_privilege_delimiter(self) -> None:
        with pytest.raises(MalformedPermissionError, match="delimited by"):
            Permission.parse("/articles/article-1")

    @pytest.mark.parametrize("text", [":r", "?author=user-1:r"])
    def test_empty_path(self, text: str) -> None:
        with pytest.raises(MalformedPermissionError):
            Permission.parse(text)

    def test_empty_privileges(self) -> None:
        with pytest.raises(MalformedPermissionError):
            Permission.parse("/articles:")

    def test_unknown_privilege(self) -> None:
        with pytest.raises(UnknownPrivilegeError, match="Privilege 'z' does not exist"):
            Permission.parse("/articles/article-1:z")

    def test_attribute_without_value_separator(self) -> None:
        with pytest.raises(MalformedPermissionError):
            Permission.parse("/articles?author:r")

    def test_numeric_privileges(self) -> None:
        assert Permission.parse("/articles:6").privileges.identifiers == ["r", "u"]

    def test_direct_construction_resolves_privileges(self) -> None:
        perm = Permission("/articles", {"author": "user-1"}, "ru")  # type: ignore[arg-type]
        assert perm.attributes == {"author": ("user-1",)}
        assert perm.privileges.mask == 6

    def test_direct_construction_rejects_empty_privileges(self) -> None:
        with pytest.raises(MalformedPermissionError):
            Permission("/articles", None, PrivilegeSet(0))

    def test_coerce_returns_permission_unchanged(self) -> None:
        perm = Permission.parse("/articles:r")
        assert Permission.coerce(perm) is perm
        assert Permission.coerce("/articles:r") == perm


# ---------------------------------------------------------------------------
# Attribute helpers
# ---------------------------------------------------------------------------


class TestAttributeHelpers:
    def test_parse_attributes_strips_question_mark(self) -> None:
        assert parse_attributes("?a=1,2&b=3") == {"a": ("1", "2"), "b": ("3",)}

    def test_value_may_contain_equals(self) -> None:
        assert parse_attributes("filter=a=b") == {"filter": ("a=b",)}

    def test_normalize_none(self) -> None:
        assert normalize_attributes(None) is None

    def test_normalize_empty_mapping(self) -> None:
        assert normalize_attributes({}) is None

    def test_normalize_empty_collection(self) -> None:
        with pytest.raises(InvalidAttributeError):
            normalize_attributes({"a": []})


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------


class TestModifiers:
    def test_with_path(self) -> None:
        perm = Permission.parse("/articles:r")
        changed = perm.with_path("/test")
        assert changed.path == "/test"
        assert perm.path == "/articles"

    @pytest.mark.parametrize("path", [False, "", None])
    def test_with_path_rejects_invalid(self, path: object) -> None:
        with pytest.raises(MalformedPermissionError):
            Permission.parse("/articles:r").with_path(path)  # type: ignore[arg-type]

    def test_with_attributes_mapping(self) -> None:
        perm = Permission.parse("/articles?attr1=test,test2&attr2=test3:r")
        changed = perm.with_attributes({"attr1": "a1,a2", "attr3": ["a2", "a3"]})
        assert changed.attributes == {"attr1": ("a1", "a2"), "attr3": ("a2", "a3")}
        assert perm.attributes == {"attr1": ("test", "test2"), "attr2": ("test3",)}

    def test_with_attributes_query_string(self) -> None:
        perm = Permission.parse("/articles?attr1=test,test2&attr2=test3:r")
        changed = perm.with_attributes("?attr1=test&attr3=test")
        assert changed.attributes == {"attr1": ("test",), "attr3": ("test",)}

    def test_with_attributes_none_removes_constraints(self) -> None:
        perm = Permission.parse("/articles?attr1=test:r")
        assert perm.with_attributes(None).attributes is None

    @pytest.mark.parametrize("empty", [{}, "", "?"])
    def test_with_empty_attributes_is_unconstrained(self, empty: object) -> None:
        perm = Permission.parse("/articles?attr1=test:r").with_attributes(empty)  # type: ignore[arg-type]
        assert perm.attributes is None
        assert perm.allows("/articles:r") is True
        assert perm.allows("/articles?author=user-1:r") is True

    def test_with_empty_attributes_round_trips(self) -> None:
        perm = Permission.parse("/articles:r").with_attributes({})
        assert str(perm) == "/articles:r"
        assert Permission.parse(str(perm)) == perm

    def test_direct_construction_with_empty_mapping(self) -> None:
        perm = Permission("/articles", {}, PrivilegeSet.resolve("r"))
        assert perm.attributes is None

    def test_with_attributes_rejects_non_mapping(self) -> None:
        with pytest.raises(MalformedPermissionError):
            Permission.parse("/articles:r").with_attributes(False)  # type: ignore[arg-type]

    def test_with_attributes_rejects_bad_value(self) -> None:
        with pytest.raises(InvalidAttributeError):
            Permission.parse("/articles:r").with_attributes({"attr": False})  # type: ignore[dict-item]

    def test_with_privileges_list(self) -> None:
        perm = Permission.parse("/articles:r").with_privileges(["all", "m", "super"])
        assert perm.privileges.identifiers == ["c", "r", "u", "d", "s", "m"]

    def test_with_privileges_string(self) -> None:
        perm = Permission.parse("/articles:r").with_privileges("all,m,super")
        assert perm.privileges.identifiers == ["c", "r", "u", "d", "s", "m"]

    def test_with_privileges_rejects_invalid(self) -> None:
        with pytest.raises(MalformedPermissionError):
            Permission.parse("/articles:r").with_privileges(False)  # type: ignore[arg-type]

    def test_permissions_are_immutable(self) -> None:
        perm = Permission.parse("/articles:r")
        with pytest.raises(AttributeError):
            perm.path = "/other"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Clone
# ---------------------------------------------------------------------------


class TestClone:
    def test_clone_is_independent(self) -> None:
        a = Permission.parse("/articles?status=published:m")
        b = a.clone()
        assert b == a
        assert b is not a
        assert b.attributes is not a.attributes

        a.with_path("/new").with_attributes({"status": "draft"}).with_privileges(["r"])
        assert b.path == "/articles"
        assert b.attributes == {"status": ("published",)}
        assert b.privileges.identifiers == ["m"]


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------


class TestMatching:
    def test_grant_privileges(self) -> None:
        perm = Permission.parse("/articles:all,m,s")
        assert perm.grant_privileges().identifiers == ["s", "m"]

    def test_has_privilege(self) -> None:
        perm = Permission.parse("/articles:owner")
        assert perm.has_privilege("read") is True
        assert perm.has_privilege("m") is False

    def test_match_path_is_symmetric(self) -> None:
        perm = Permission.parse("/articles/article-1:r")
        assert perm.match_path("/articles/*") is True
        assert Permission.parse("/articles/*:r").match_path("/articles/article-1") is True

    def test_unconstrained_matches_any_attributes(self) -> None:
        perm = Permission.parse("/articles:r")
        assert perm.match_attributes(None) is True
        assert perm.match_attributes({"author": ("anyone",)}) is True

    def test_constrained_requires_key(self) -> None:
        perm = Permission.parse("/articles?author=user-1:r")
        assert perm.match_attributes(None) is False
        assert perm.match_attributes({"status": ("draft",)}) is False

    def test_candidate_values_must_be_allowed(self) -> None:
        perm = Permission.parse("/articles?author=user-1,user-2:r")
        assert perm.match_attributes({"author": ("user-1",)}) is True
        assert perm.match_attributes({"author": ("user-1", "user-2")}) is True
        assert perm.match_attributes({"author": ("user-1", "user-3")}) is False

    def test_candidate_wildcard_marker(self) -> None:
        perm = Permission.parse("/articles?author=user-1:r")
        assert perm.match_attributes({"author": ("*",)}) is True

    def test_grantor_star_is_literal(self) -> None:
        perm = Permission.parse("/articles?author=*:r")
        assert perm.match_attributes({"author": ("user-1",)}) is False

    def test_match_privileges_requires_full_coverage(self) -> None:
        perm = Permission.parse("/articles:ru")
        assert perm.match_privileges(PrivilegeSet.resolve("r")) is True
        assert perm.match_privileges(PrivilegeSet.resolve("rd")) is False

    def test_match_url(self) -> None:
        perm = Permission.parse("/articles?author=user-1:r")
        assert perm.match_url("/articles/1?author=user-1:d") is True
        assert perm.match_url("/comments?author=user-1:r") is False


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


class TestSerialisation:
    def test_to_dict(self) -> None:
        perm = Permission.parse("/articles/**/article-1?author=user-1,user-2&flag=1:crud")
        assert perm.to_dict() == {
            "path": "/articles/**/article-1",
            "attributes": {"author": ["user-1", "user-2"], "flag": ["1"]},
            "privileges": ["c", "r", "u", "d"],
        }

    def test_to_dict_without_attributes(self) -> None:
        assert Permission.parse("/articles:r").to_dict()["attributes"] is None

    def test_str_uses_identifiers(self) -> None:
        text = "/articles/**/article-1?author=user-1,user-2&flag=1:owner"
        assert str(Permission.parse(text)) == "/articles/**/article-1?author=user-1,user-2&flag=1:cruds"

    def test_str_round_trips(self) -> None:
        perm = Permission.parse("/articles?author=user-1:read,update")
        assert Permission.parse(str(perm)) == perm
