"""资源读取器测试 - 作用域隔离、冲突规则、归档 / 目录双模式"""

from __future__ import annotations

from pathlib import Path

import pytest

from vcatalog.core.accessor import LoadedResourceBundle, ResourceAccessor
from vcatalog.core.artifact import ArtifactCoordinate, ResolvedArtifact
from vcatalog.core.exceptions import CacheCorruption, ResourceNotFound, ValidationError
from vcatalog.core.scope import IsolationScope

CONNECTORS = {
    "kamelets/aws-s3-source.kamelet.yaml": "kind: Kamelet\nname: aws-s3-source\n",
    "kamelets/timer-source.kamelet.yaml": "kind: Kamelet\nname: timer-source\n",
    "kamelets/README.md": "not a kamelet",
    "META-INF/MANIFEST.MF": "x",
}


@pytest.fixture()
def accessor() -> ResourceAccessor:
    return ResourceAccessor()


@pytest.fixture()
def member(tmp_path: Path, make_jar):  # type: ignore[no-untyped-def]
    """工厂: 把条目写成 jar（或展开目录），返回 ResolvedArtifact"""

    def _member(name: str, entries: dict[str, str], exploded: bool = False) -> ResolvedArtifact:
        coord = ArtifactCoordinate("org.example", name, "1.0")
        if exploded:
            root = tmp_path / f"{name}-exploded"
            for rel, text in entries.items():
                target = root / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(text, encoding="utf-8")
            root.mkdir(exist_ok=True)
            return ResolvedArtifact(coord, root)
        path = tmp_path / f"{name}.jar"
        path.write_bytes(make_jar(entries))
        return ResolvedArtifact(coord, path)

    return _member


def _sealed(scope_id: str, *members: ResolvedArtifact) -> IsolationScope:
    scope = IsolationScope(scope_id)
    scope.add_members(list(members))
    scope.seal()
    return scope


class TestReadOne:
    def test_reads_from_archive(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("s", member("catalog", {"catalog/index.json": "{}"}))
        assert accessor.read_one(scope, "catalog/index.json") == b"{}"

    def test_missing_resource(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("main-4.8.0", member("catalog", {"a.txt": "a"}))
        with pytest.raises(ResourceNotFound) as exc_info:
            accessor.read_one(scope, "schema/camelYamlDsl.json")
        assert exc_info.value.scope_id == "main-4.8.0"
        assert exc_info.value.path == "schema/camelYamlDsl.json"

    def test_read_optional(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("s", member("catalog", {"a.txt": "a"}))
        assert accessor.read_optional(scope, "b.txt") is None
        assert accessor.read_optional(scope, "a.txt") == b"a"

    def test_later_member_wins(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed(
            "s",
            member("first", {"shared.json": "first"}),
            member("second", {"shared.json": "second"}),
        )
        assert accessor.read_one(scope, "shared.json") == b"second"

    def test_case_sensitive(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("s", member("catalog", {"Schema/x.json": "x"}))
        with pytest.raises(ResourceNotFound):
            accessor.read_one(scope, "schema/x.json")

    def test_directory_entry_is_not_a_resource(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("s", member("dev", {"kamelets/a.kamelet.yaml": "a"}, exploded=True))
        with pytest.raises(ResourceNotFound):
            accessor.read_one(scope, "kamelets")

    def test_path_traversal_rejected(self, accessor, member, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        (tmp_path / "secret.txt").write_text("secret")
        scope = _sealed("s", member("dev", {"a.txt": "a"}, exploded=True))
        with pytest.raises(ResourceNotFound):
            accessor.read_one(scope, "../secret.txt")

    def test_unsealed_scope_rejected(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = IsolationScope("s")
        scope.add_member(member("catalog", {"a.txt": "a"}))
        with pytest.raises(ValidationError, match="作用域尚未封存"):
            accessor.read_one(scope, "a.txt")

    def test_corrupt_member(self, accessor, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        bad = tmp_path / "bad.jar"
        bad.write_bytes(b"not a zip")
        scope = _sealed("s", ResolvedArtifact(ArtifactCoordinate("g", "bad", "1"), bad))
        with pytest.raises(CacheCorruption):
            accessor.read_one(scope, "a.txt")

    def test_corrupt_entry(self, accessor, tmp_path: Path, make_jar) -> None:  # type: ignore[no-untyped-def]
        """归档能打开但条目 CRC 不符: read_one / read_many 都报缓存损坏"""
        raw = make_jar({"catalog/models/route.json": '{"v": "4.7.0"}'})
        at = raw.index(b"4.7.0")
        bad = tmp_path / "flipped.jar"
        bad.write_bytes(raw[:at] + b"X" + raw[at + 1:])
        scope = _sealed("main-4.7.0", ResolvedArtifact(ArtifactCoordinate("g", "flipped", "1"), bad))

        with pytest.raises(CacheCorruption, match="catalog/models/route.json"):
            accessor.read_one(scope, "catalog/models/route.json")
        with pytest.raises(CacheCorruption):
            accessor.read_many(scope, "catalog/", ".json")


class TestIsolation:
    def test_scopes_do_not_leak(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        """同名资源在两个作用域中各自返回本作用域的内容"""
        v1 = _sealed("main-4.7.0", member("catalog-v1", {"catalog/models/route.json": "v1"}))
        v2 = _sealed("main-4.8.0", member("catalog-v2", {"catalog/models/route.json": "v2"}))
        assert accessor.read_one(v1, "catalog/models/route.json") == b"v1"
        assert accessor.read_one(v2, "catalog/models/route.json") == b"v2"

    def test_resource_only_in_other_scope(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        a = _sealed("a", member("only-a", {"only-a.txt": "a"}))
        b = _sealed("b", member("only-b", {"other.txt": "b"}))
        assert accessor.read_one(a, "only-a.txt") == b"a"
        with pytest.raises(ResourceNotFound):
            accessor.read_one(b, "only-a.txt")


class TestReadMany:
    def test_prefix_and_suffix_filter(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("s", member("kamelets", CONNECTORS))
        bundle = accessor.read_many(scope, "kamelets/", ".kamelet.yaml")
        assert bundle.keys() == ["aws-s3-source.kamelet.yaml", "timer-source.kamelet.yaml"]
        assert bundle.warnings == []

    def test_empty_result_is_not_error(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("s", member("kamelets", CONNECTORS))
        assert len(accessor.read_many(scope, "nothing/", ".yaml")) == 0

    def test_archive_and_directory_equivalent(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        packed = _sealed("packed", member("packed", CONNECTORS))
        exploded = _sealed("exploded", member("exploded", CONNECTORS, exploded=True))
        a = accessor.read_many(packed, "kamelets/", ".kamelet.yaml")
        b = accessor.read_many(exploded, "kamelets/", ".kamelet.yaml")
        assert a.entries == b.entries
        assert accessor.read_one(packed, "kamelets/README.md") == accessor.read_one(
            exploded, "kamelets/README.md",
        )

    def test_collision_later_wins_with_warning(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed(
            "s",
            member("old", {"kamelets/timer-source.kamelet.yaml": "old"}),
            member("new", {"kamelets/timer-source.kamelet.yaml": "new"}),
        )
        bundle = accessor.read_many(scope, "kamelets/", ".kamelet.yaml")
        assert bundle["timer-source.kamelet.yaml"] == b"new"
        assert len(bundle.warnings) == 1
        assert "资源名冲突" in bundle.warnings[0]
        assert bundle.origins["timer-source.kamelet.yaml"] == "org.example:new:1.0"

    def test_custom_key_fn(self, accessor, member) -> None:  # type: ignore[no-untyped-def]
        scope = _sealed("s", member("kamelets", CONNECTORS))
        bundle = accessor.read_many(
            scope, "kamelets/", ".kamelet.yaml",
            key_fn=lambda p: p.rsplit("/", 1)[-1].removesuffix(".kamelet.yaml"),
        )
        assert bundle.keys() == ["aws-s3-source", "timer-source"]
        assert bundle.text("timer-source").startswith("kind: Kamelet")


class TestLoadedResourceBundle:
    def test_merge_with_prefix(self) -> None:
        inner = LoadedResourceBundle()
        inner.put("a.json", b"1", origin="x")
        outer = LoadedResourceBundle()
        outer.merge(inner, prefix="catalog/")
        assert "catalog/a.json" in outer
        assert outer.origins["catalog/a.json"] == "x"
