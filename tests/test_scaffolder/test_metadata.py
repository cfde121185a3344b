"""Unit tests for adapter metadata loading (archgen.scaffolder.metadata).

Tests cover:
- MetadataLookup.path_for with and without required values
- Framework-aware lookup winning over the legacy layout
- Legacy fallback and AdapterMetadataNotFound listing tried paths
- AdapterDescriptor template references (relative and pack-rooted)
- Test dependencies defaulting to testImplementation
- Invalid metadata: bad names, missing referenced templates, broken YAML
- Descriptor caching
"""

from __future__ import annotations

import pytest

from archgen.errors import AdapterMetadataNotFound, ConfigurationError
from archgen.scaffolder.metadata import DEFAULT_LOOKUPS, MetadataLookup, TemplateMetadataSource

pytestmark = pytest.mark.unit

REDIS_METADATA = """\
name: redis
type: driven
files:
  - template: Adapter.java.j2
    output: "{class_name}.java"
dependencies:
  - group: org.springframework.boot
    artifact: spring-boot-starter-data-redis
testDependencies:
  - group: org.testcontainers
    artifact: testcontainers
    version: "1.20.1"
applicationPropertiesTemplate: application-properties.yml.j2
configurationClasses:
  - name: RedisConfig
    packagePath: infrastructure.config
    templatePath: RedisConfig.java.j2
"""


@pytest.fixture
def pack(dict_source):
    dict_source.files.update(
        {
            "adapters/redis/metadata.yml": REDIS_METADATA,
            "adapters/redis/Adapter.java.j2": "class {{ class_name }} {}",
            "adapters/redis/application-properties.yml.j2": "spring: {}",
            "adapters/redis/RedisConfig.java.j2": "class RedisConfig {}",
        }
    )
    return dict_source


# ---------------------------------------------------------------------------
# Lookup strategies
# ---------------------------------------------------------------------------


class TestMetadataLookup:
    def test_framework_aware_path(self):
        lookup = DEFAULT_LOOKUPS[0]
        assert lookup.path_for("Redis", "spring", "reactive", "driven") == (
            "frameworks/spring/reactive/adapters/driven/redis/metadata.yml"
        )

    def test_missing_required_value_skips(self):
        assert DEFAULT_LOOKUPS[0].path_for("redis", "spring", None, "driven") is None

    def test_legacy_path_needs_nothing(self):
        assert DEFAULT_LOOKUPS[1].path_for("redis") == "adapters/redis/metadata.yml"

    def test_custom_lookup(self):
        lookup = MetadataLookup(label="flat", pattern="{adapter}.yml")
        assert lookup.path_for("kafka") == "kafka.yml"

    def test_candidate_paths_order(self, pack):
        paths = TemplateMetadataSource(pack).candidate_paths("redis", "spring", "imperative", "driven")
        assert paths == [
            "frameworks/spring/imperative/adapters/driven/redis/metadata.yml",
            "adapters/redis/metadata.yml",
        ]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadAdapter:
    def test_legacy_fallback(self, pack):
        adapter = TemplateMetadataSource(pack).load_adapter("redis", "spring", "reactive", "driven")
        assert adapter.name == "redis"
        assert adapter.type == "driven"
        assert adapter.metadata_path == "adapters/redis/metadata.yml"
        assert adapter.template_ref("Adapter.java.j2") == "adapters/redis/Adapter.java.j2"
        assert adapter.template_ref("/adapters/common/Data.java.j2") == "adapters/common/Data.java.j2"

    def test_framework_aware_wins(self, pack):
        pack.files["frameworks/spring/reactive/adapters/driven/redis/metadata.yml"] = (
            "name: redis\ntype: driven\ndescription: reactive\n"
            "files:\n  - template: /adapters/redis/Adapter.java.j2\n    output: '{class_name}.java'\n"
        )
        adapter = TemplateMetadataSource(pack).load_adapter("redis", "spring", "reactive", "driven")
        assert adapter.description == "reactive"
        assert adapter.referenced_templates() == ["adapters/redis/Adapter.java.j2"]

    def test_not_found_lists_tried_paths(self, pack):
        with pytest.raises(AdapterMetadataNotFound) as exc_info:
            TemplateMetadataSource(pack).load_adapter("cassandra", "spring", "reactive", "driven")
        assert exc_info.value.tried == [
            "frameworks/spring/reactive/adapters/driven/cassandra/metadata.yml",
            "adapters/cassandra/metadata.yml",
        ]
        assert "Failed to load adapter metadata for 'cassandra'" in str(exc_info.value)

    def test_dependencies_and_scopes(self, pack):
        adapter = TemplateMetadataSource(pack).load_adapter("redis")
        assert adapter.dependencies[0].scope == "implementation"
        assert adapter.dependencies[0].version == ""
        assert adapter.test_dependencies[0].scope == "testImplementation"
        assert adapter.test_dependencies[0].coordinate == "org.testcontainers:testcontainers:1.20.1"

    def test_configuration_classes(self, pack):
        adapter = TemplateMetadataSource(pack).load_adapter("redis")
        config = adapter.configuration_classes[0]
        assert config.name == "RedisConfig"
        assert config.package_path == "infrastructure.config"
        assert "adapters/redis/RedisConfig.java.j2" in adapter.referenced_templates()

    def test_cached_per_key(self, pack):
        metadata = TemplateMetadataSource(pack)
        first = metadata.load_adapter("redis", "spring", "reactive", "driven")
        pack.files["adapters/redis/metadata.yml"] = "not: valid: yaml: ["
        assert metadata.load_adapter("redis", "spring", "reactive", "driven") is first


class TestInvalidMetadata:
    def test_missing_referenced_template(self, pack):
        del pack.files["adapters/redis/RedisConfig.java.j2"]
        with pytest.raises(ConfigurationError, match="Referenced template not found: adapters/redis/RedisConfig.java.j2"):
            TemplateMetadataSource(pack).load_adapter("redis")

    def test_invalid_name_and_type(self, pack):
        pack.files["adapters/bad/metadata.yml"] = (
            "name: Bad_Name\ntype: sideways\nfiles:\n  - template: /adapters/redis/Adapter.java.j2\n    output: x\n"
        )
        with pytest.raises(ConfigurationError) as exc_info:
            TemplateMetadataSource(pack).load_adapter("bad")
        message = str(exc_info.value)
        assert "Invalid adapter name: Bad_Name" in message
        assert "Invalid adapter type: sideways" in message

    def test_configuration_class_fields_required(self, pack):
        pack.files["adapters/cfg/metadata.yml"] = (
            "name: cfg\ntype: driven\nfiles:\n  - template: /adapters/redis/Adapter.java.j2\n    output: x\n"
            "configurationClasses:\n  - name: CfgConfig\n"
        )
        with pytest.raises(ConfigurationError) as exc_info:
            TemplateMetadataSource(pack).load_adapter("cfg")
        assert "missing 'packagePath'" in str(exc_info.value)
        assert "missing 'templatePath'" in str(exc_info.value)

    def test_no_files(self, pack):
        pack.files["adapters/empty/metadata.yml"] = "name: empty\ntype: driven\n"
        with pytest.raises(ConfigurationError, match="at least one file"):
            TemplateMetadataSource(pack).load_adapter("empty")

    def test_empty_document(self, pack):
        pack.files["adapters/blank/metadata.yml"] = ""
        with pytest.raises(ConfigurationError, match="is empty"):
            TemplateMetadataSource(pack).load_adapter("blank")

    def test_broken_yaml(self, pack):
        pack.files["adapters/broken/metadata.yml"] = "name: [broken\n"
        with pytest.raises(ConfigurationError, match="Cannot parse adapter metadata"):
            TemplateMetadataSource(pack).load_adapter("broken")

    def test_missing_required_field(self, pack):
        pack.files["adapters/typeless/metadata.yml"] = "name: typeless\n"
        with pytest.raises(ConfigurationError, match="type"):
            TemplateMetadataSource(pack).load_adapter("typeless")


# ---------------------------------------------------------------------------
# Built-in pack
# ---------------------------------------------------------------------------


class TestBuiltinPack:
    @pytest.mark.parametrize(
        "adapter_id,category",
        [
            ("redis", "driven"),
            ("mongodb", "driven"),
            ("postgresql", "driven"),
            ("rest-client", "driven"),
            ("kafka", "driven"),
            ("rest", "driving"),
            ("graphql", "driving"),
        ],
    )
    @pytest.mark.parametrize("paradigm", ["reactive", "imperative"])
    def test_every_adapter_loads(self, builtin_metadata, adapter_id, category, paradigm):
        adapter = builtin_metadata.load_adapter(adapter_id, "spring", paradigm, category)
        assert adapter.name == adapter_id
        assert adapter.type == category

    def test_reactive_redis_uses_reactive_starter(self, builtin_metadata):
        adapter = builtin_metadata.load_adapter("redis", "spring", "reactive", "driven")
        assert adapter.metadata_path.startswith("frameworks/spring/reactive/")
        assert adapter.dependencies[0].artifact == "spring-boot-starter-data-redis-reactive"

    def test_quarkus_falls_back_to_legacy(self, builtin_metadata):
        adapter = builtin_metadata.load_adapter("redis", "quarkus", "reactive", "driven")
        assert adapter.metadata_path == "adapters/redis/metadata.yml"

    def test_list_adapter_metadata(self, builtin_metadata):
        paths = builtin_metadata.list_adapter_metadata()
        assert "adapters/redis/metadata.yml" in paths
        assert "frameworks/spring/imperative/adapters/driving/rest/metadata.yml" in paths
        assert all(path.endswith("/metadata.yml") for path in paths)

    def test_load_architecture_cached(self, builtin_metadata):
        first = builtin_metadata.load_architecture("onion-single")
        assert builtin_metadata.load_architecture("onion-single") is first
