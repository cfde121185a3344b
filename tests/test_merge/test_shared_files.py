"""Unit tests for shared-file edits (archgen.merge.shared_files).

Tests cover:
- ModuleInclude: append, already-included detection (single and multi-argument
  include calls), idempotence
- DependencyLine: placement after same configuration, before closing brace,
  existing coordinates in any version, project() notation, missing block,
  closures and constraints blocks inside dependencies
- find_block preferring top-level blocks
- YamlOverlay: base-wins merge, security comment, leading comments kept,
  multi-document files, unmergeable files reported as warnings
- apply_edits folding outcomes
"""

from __future__ import annotations

import textwrap

import pytest
import yaml

from archgen.merge import (
    SECURITY_WARNING_COMMENT,
    DependencyLine,
    ModuleInclude,
    YamlOverlay,
    apply_edits,
    block_statements,
    contains_sensitive_keys,
    find_block,
    leading_comments,
    split_first_document,
)

pytestmark = pytest.mark.unit


BUILD_SCRIPT = textwrap.dedent(
    """\
    plugins {
        java
    }

    dependencies {
        implementation("org.springframework.boot:spring-boot-starter-webflux")
        testImplementation("org.springframework.boot:spring-boot-starter-test")
    }
    """
)


# ---------------------------------------------------------------------------
# ModuleInclude
# ---------------------------------------------------------------------------


class TestModuleInclude:
    def test_appends_include(self):
        outcome = ModuleInclude("settings.gradle.kts", "infrastructure/driven-adapters/redis").apply(
            'rootProject.name = "shop"\n'
        )
        assert outcome.changed
        assert outcome.text == (
            'rootProject.name = "shop"\ninclude("infrastructure:driven-adapters:redis")\n'
        )

    def test_adds_missing_trailing_newline(self):
        outcome = ModuleInclude("settings.gradle.kts", "domain").apply('rootProject.name = "shop"')
        assert outcome.text.endswith('"shop"\ninclude("domain")\n')

    def test_already_included_with_leading_colon(self):
        text = 'include(":domain")\n'
        outcome = ModuleInclude("settings.gradle.kts", "domain").apply(text)
        assert not outcome.changed
        assert outcome.text == text

    def test_second_application_is_identity(self):
        edit = ModuleInclude("settings.gradle.kts", "application/app-service")
        once = edit.apply("").text
        assert edit.apply(once).text == once

    def test_prefix_module_is_not_a_match(self):
        outcome = ModuleInclude("settings.gradle.kts", "domain").apply('include("domain:model")\n')
        assert outcome.changed

    @pytest.mark.parametrize("module", ["domain", "application", "infrastructure/redis"])
    def test_already_included_in_multi_argument_call(self, module):
        text = 'rootProject.name = "shop"\ninclude(":domain", ":application",\n    "infrastructure:redis")\n'
        outcome = ModuleInclude("settings.gradle.kts", module).apply(text)
        assert not outcome.changed
        assert outcome.text == text

    def test_multi_argument_call_without_module(self):
        outcome = ModuleInclude("settings.gradle.kts", "infrastructure").apply('include(":domain", ":application")\n')
        assert outcome.changed
        assert outcome.text.endswith('include("infrastructure")\n')


# ---------------------------------------------------------------------------
# DependencyLine
# ---------------------------------------------------------------------------


class TestDependencyLine:
    def test_inserted_after_same_configuration(self):
        edit = DependencyLine.coordinate(
            "build.gradle.kts", "implementation", "org.springframework.boot:spring-boot-starter-data-redis"
        )
        outcome = edit.apply(BUILD_SCRIPT)
        lines = outcome.text.splitlines()
        index = lines.index('    implementation("org.springframework.boot:spring-boot-starter-webflux")')
        assert lines[index + 1] == '    implementation("org.springframework.boot:spring-boot-starter-data-redis")'
        assert outcome.changed

    def test_new_configuration_goes_before_closing_brace(self):
        edit = DependencyLine.coordinate("build.gradle.kts", "runtimeOnly", "org.postgresql:postgresql")
        text = edit.apply(BUILD_SCRIPT).text
        assert '    runtimeOnly("org.postgresql:postgresql")\n}\n' in text

    def test_existing_coordinate_any_version_is_kept(self):
        script = BUILD_SCRIPT.replace(
            '"org.springframework.boot:spring-boot-starter-test"',
            '"org.testcontainers:testcontainers:1.19.0"',
        )
        edit = DependencyLine.coordinate(
            "build.gradle.kts", "testImplementation", "org.testcontainers:testcontainers:1.20.1"
        )
        outcome = edit.apply(script)
        assert not outcome.changed
        assert outcome.text == script

    def test_idempotent(self):
        edit = DependencyLine.coordinate("build.gradle.kts", "implementation", "com.acme:lib:1.0")
        once = edit.apply(BUILD_SCRIPT).text
        assert edit.apply(once).text == once

    def test_project_notation(self):
        edit = DependencyLine.project(
            "application/app-service/build.gradle.kts", "implementation", "infrastructure/driven-adapters/redis"
        )
        assert edit.statement == 'implementation(project(":infrastructure:driven-adapters:redis"))'
        once = edit.apply("dependencies {\n}\n")
        assert once.text == (
            'dependencies {\n    implementation(project(":infrastructure:driven-adapters:redis"))\n}\n'
        )
        assert not edit.apply(once.text).changed

    def test_single_line_block(self):
        edit = DependencyLine.coordinate("build.gradle.kts", "implementation", "a:b")
        assert edit.apply("dependencies { }\n").text == 'dependencies {\n    implementation("a:b")\n}\n'

    def test_closure_statement_is_not_an_anchor(self):
        script = textwrap.dedent(
            """\
            dependencies {
                implementation("a:b:1.0") {
                    exclude(group = "x")
                }
            }
            """
        )
        outcome = DependencyLine.coordinate("build.gradle.kts", "implementation", "c:d:2.0").apply(script)
        assert outcome.text == textwrap.dedent(
            """\
            dependencies {
                implementation("a:b:1.0") {
                    exclude(group = "x")
                }
                implementation("c:d:2.0")
            }
            """
        )

    def test_anchor_is_last_single_line_statement(self):
        script = textwrap.dedent(
            """\
            dependencies {
                implementation("a:b:1.0")
                implementation("e:f:1.0") {
                    because("pinned")
                }
            }
            """
        )
        text = DependencyLine.coordinate("build.gradle.kts", "implementation", "c:d").apply(script).text
        lines = text.splitlines()
        assert lines[2] == '    implementation("c:d")'
        assert lines[3] == '    implementation("e:f:1.0") {'

    def test_constraint_is_not_a_declaration(self):
        script = textwrap.dedent(
            """\
            dependencies {
                constraints {
                    implementation("g:h:3.0")
                }
            }
            """
        )
        edit = DependencyLine.coordinate("build.gradle.kts", "implementation", "g:h")
        assert not edit.is_declared(script)

        outcome = edit.apply(script)
        assert outcome.changed
        assert outcome.text == textwrap.dedent(
            """\
            dependencies {
                constraints {
                    implementation("g:h:3.0")
                }
                implementation("g:h")
            }
            """
        )
        assert edit.apply(outcome.text).text == outcome.text

    def test_missing_block_warns_instead_of_editing(self):
        edit = DependencyLine.coordinate("build.gradle.kts", "implementation", "a:b")
        outcome = edit.apply("plugins { java }\n")
        assert not outcome.changed
        assert outcome.warnings == (
            'No dependencies block found in build.gradle.kts; add manually: implementation("a:b")',
        )


class TestFindBlock:
    def test_top_level_block_preferred(self):
        text = textwrap.dedent(
            """\
            subprojects {
                dependencies {
                    implementation("x:y")
                }
            }
            dependencies {
            }
            """
        )
        open_index, close_index = find_block(text, "dependencies")
        assert text[open_index:close_index + 1] == "{\n}"

    def test_nested_block_used_when_only_one(self):
        text = "subprojects {\n    dependencies {\n        api(\"x:y\")\n    }\n}\n"
        open_index, close_index = find_block(text, "dependencies")
        assert 'api("x:y")' in text[open_index:close_index]

    def test_missing_and_unbalanced(self):
        assert find_block("plugins {}\n", "dependencies") is None
        assert find_block("dependencies {\n", "dependencies") is None


class TestBlockStatements:
    def test_nested_and_continuation_lines_skipped(self):
        body = textwrap.dedent(
            """\
            api("a:b")
            implementation(
                "c:d"
            )
            constraints {
                api("e:f")
            }
            testImplementation("g:h") // note (
            """
        )
        lines = block_statements(body)
        assert [line.text for line in lines] == [
            'api("a:b")',
            "implementation(",
            "constraints {",
            'testImplementation("g:h") // note (',
        ]
        assert [line.balanced for line in lines] == [True, False, False, True]
        assert body[lines[0].start:lines[0].end] == 'api("a:b")'

    def test_braces_inside_strings_ignored(self):
        lines = block_statements('implementation("a:b:{v}")\napi("c:d")\n')
        assert [line.text for line in lines] == ['implementation("a:b:{v}")', 'api("c:d")']


# ---------------------------------------------------------------------------
# YamlOverlay
# ---------------------------------------------------------------------------


class TestYamlOverlay:
    def test_merges_new_keys(self):
        overlay = YamlOverlay("application.yml", {"spring": {"data": {"redis": {"port": 6379}}}})
        outcome = overlay.apply("spring:\n  application:\n    name: shop\n")
        assert outcome.changed
        assert yaml.safe_load(outcome.text) == {
            "spring": {"application": {"name": "shop"}, "data": {"redis": {"port": 6379}}}
        }

    def test_conflicts_keep_base(self):
        overlay = YamlOverlay("application.yml", {"server": {"port": 9090}, "extra": True})
        outcome = overlay.apply("server:\n  port: 8080\n")
        assert yaml.safe_load(outcome.text)["server"]["port"] == 8080
        assert [c.key_path for c in outcome.conflicts] == ["server.port"]

    def test_unchanged_text_returned_verbatim(self):
        text = "# keep me\nserver:\n  port: 8080   # inline\n"
        outcome = YamlOverlay("application.yml", {"server": {"port": 8080}}).apply(text)
        assert not outcome.changed
        assert outcome.text == text

    def test_security_comment_added_once(self):
        overlay = YamlOverlay("application.yml", {"spring": {"data": {"redis": {"password": ""}}}})
        first = overlay.apply("")
        assert first.text.startswith(SECURITY_WARNING_COMMENT)

        second = YamlOverlay("application.yml", {"db": {"secret": "x"}}).apply(first.text)
        assert second.text.count("Do not store credentials") == 1

    def test_leading_comments_preserved(self):
        text = "# Application settings\n\nspring:\n  application:\n    name: shop\n"
        outcome = YamlOverlay("application.yml", {"management": {"port": 9000}}).apply(text)
        assert outcome.text.startswith("# Application settings\n\n")

    def test_merges_into_first_document_and_keeps_the_rest(self):
        profiles = "---\nspring:\n  config:\n    activate:\n      on-profile: prod\nserver:\n  port: 80\n"
        text = "spring:\n  application:\n    name: shop\n" + profiles
        outcome = YamlOverlay("application.yml", {"server": {"port": 8080}}).apply(text)

        assert outcome.changed
        assert outcome.conflicts == ()
        assert outcome.text.endswith(profiles)
        first, second = yaml.safe_load_all(outcome.text)
        assert first == {"spring": {"application": {"name": "shop"}}, "server": {"port": 8080}}
        assert second["server"]["port"] == 80

    def test_leading_document_marker_opens_first_document(self):
        text = "# settings\n---\nserver:\n  port: 8080\n"
        assert split_first_document(text) == (text, "")
        assert split_first_document("a: 1\n--- \nb: 2\n") == ("a: 1\n", "--- \nb: 2\n")

    @pytest.mark.parametrize("text", ["- just\n- a list\n", "server: [8080\n"])
    def test_unmergeable_base_warns_and_keeps_text(self, text):
        outcome = YamlOverlay("application.yml", {"a": 1, "b": 2}).apply(text)
        assert not outcome.changed
        assert outcome.text == text
        assert len(outcome.warnings) == 1
        assert outcome.warnings[0].startswith("Cannot merge into application.yml (")
        assert outcome.warnings[0].endswith("add manually: a, b")

    def test_describe(self):
        overlay = YamlOverlay("application.yml", {"a": 1, "b": 2}, source="redis")
        assert overlay.describe() == "application.yml: merge 2 top-level key(s) (from redis)"


class TestHelpers:
    def test_contains_sensitive_keys(self):
        assert contains_sensitive_keys({"spring": {"datasource": {"url": "jdbc:x"}}})
        assert not contains_sensitive_keys({"server": {"port": 8080}})

    def test_leading_comments(self):
        assert leading_comments("# a\n# b\nkey: 1\n# c\n") == "# a\n# b\n"
        assert leading_comments("key: 1\n") == ""


# ---------------------------------------------------------------------------
# apply_edits
# ---------------------------------------------------------------------------


class TestApplyEdits:
    def test_folds_outcomes(self):
        edits = [
            DependencyLine.coordinate("build.gradle.kts", "implementation", "a:b"),
            DependencyLine.coordinate("build.gradle.kts", "implementation", "a:b:2.0"),
            DependencyLine.coordinate("build.gradle.kts", "api", "c:d"),
        ]
        outcome = apply_edits("dependencies {\n}\n", edits)
        assert outcome.changed
        assert outcome.text.count('"a:b') == 1
        assert 'api("c:d")' in outcome.text

    def test_no_edits_unchanged(self):
        outcome = apply_edits("text", [])
        assert not outcome.changed
        assert outcome.text == "text"

    def test_collects_conflicts_and_warnings(self):
        edits = [
            YamlOverlay("application.yml", {"a": 2}),
            DependencyLine.coordinate("application.yml", "implementation", "x:y"),
        ]
        outcome = apply_edits("a: 1\n", edits)
        assert len(outcome.conflicts) == 1
        assert len(outcome.warnings) == 1
