"""
環境変数検出のテスト

記録スクリプトからの認証情報検出・命名・重複排除・置換を検証する。

テスト方針:
- 実際の codegen 出力と同じ形の getByRole(...).fill(...) を入力にする
- ダミーデータ・セレクタらしい値は検出しない（保守的な検出）
- Hypothesis で「本物らしい」メールアドレスが必ず 1 件検出されることを確認
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings

from qad.core.env_detection import (
    DEFAULT_RULES,
    DetectionRules,
    EnvVar,
    deduplicate_env_vars,
    detect_env_vars,
    extract_env_var_names,
    find_credentials,
    format_env_var_for_display,
    generate_env_var_name,
    is_common_test_data,
    is_likely_selector,
    replace_with_env_vars,
    validate_env_vars,
)

from tests.helpers import RECORDED_LOGIN, colliding_env_vars, realistic_emails, role_names


def _fill(field: str, value: str, quote: str = "'") -> str:
    return (
        f"  await page.getByRole('textbox', {{ name: '{field}' }})"
        f".fill({quote}{value}{quote});\n"
    )


# ---------------------------------------------------------------------------
# 値のヒューリスティック
# ---------------------------------------------------------------------------

class TestHeuristics:
    """is_likely_selector / is_common_test_data のテスト。"""

    @pytest.mark.parametrize(
        "value",
        ["#login-btn", ".submit", "[name=email]", "button", "div[data-testid=x]", "a[data-cy=go]", "id=main"],
    )
    def test_selector_like_values(self, value: str) -> None:
        assert is_likely_selector(value)

    @pytest.mark.parametrize("value", ["alice@acme.io", "S3cure!pw", "p@ss w0rd"])
    def test_credential_like_values_are_not_selectors(self, value: str) -> None:
        assert not is_likely_selector(value)

    @pytest.mark.parametrize("value", ["test@acme.io", "Admin", "demo-user", "Password123", "jane.doe@x.io"])
    def test_placeholder_tokens(self, value: str) -> None:
        assert is_common_test_data(value)

    def test_real_value_is_not_placeholder(self) -> None:
        assert not is_common_test_data("alice@acme.io")


# ---------------------------------------------------------------------------
# 検出
# ---------------------------------------------------------------------------

class TestFindCredentials:
    """find_credentials のテスト。"""

    def test_detects_email_and_password(self) -> None:
        found = find_credentials(RECORDED_LOGIN)
        assert [(c.kind, c.literal_value, c.field_context) for c in found] == [
            ("email", "alice@acme.io", "Email"),
            ("password", "S3cure!pw", "Password"),
        ]

    def test_email_category_scanned_before_password(self) -> None:
        code = _fill("Password", "S3cure!pw") + _fill("Email", "alice@acme.io")
        assert [c.kind for c in find_credentials(code)] == ["email", "password"]

    def test_source_order_within_category(self) -> None:
        code = _fill("Email", "bob@acme.io") + _fill("Work email", "carol@acme.io")
        assert [c.literal_value for c in find_credentials(code)] == ["bob@acme.io", "carol@acme.io"]

    def test_username_field_is_email_kind(self) -> None:
        found = find_credentials(_fill("Username", "kmori_88@corp"))
        assert found[0].kind == "email"

    @pytest.mark.parametrize("quote", ["'", '"', "`"])
    def test_any_quote_style(self, quote: str) -> None:
        found = find_credentials(_fill("Email", "alice@acme.io", quote))
        assert [c.literal_value for c in found] == ["alice@acme.io"]

    def test_fill_on_following_line(self) -> None:
        code = (
            "  const email = page.getByRole('textbox', { name: 'Email' });\n"
            "  await email\n"
            "    .fill('alice@acme.io');\n"
        )
        assert [c.literal_value for c in find_credentials(code)] == ["alice@acme.io"]

    def test_placeholder_values_are_dropped(self) -> None:
        code = _fill("Email", "test@example.com") + _fill("Password", "admin")
        assert find_credentials(code) == []

    def test_selector_values_are_dropped(self) -> None:
        assert find_credentials(_fill("Email", "#login-btn")) == []

    def test_non_credential_field_is_ignored(self) -> None:
        assert find_credentials(_fill("Search", "quarterly report")) == []

    def test_empty_transcript(self) -> None:
        assert find_credentials("") == []

    def test_injected_keywords(self) -> None:
        rules = DetectionRules(email_keywords=("Login ID",), password_keywords=("PIN",))
        code = _fill("Login ID", "k.mori@corp.jp") + _fill("PIN", "4711-99")
        found = find_credentials(code, rules)
        assert [c.kind for c in found] == ["email", "password"]
        assert find_credentials(_fill("Email", "alice@acme.io"), rules) == []

    @settings(max_examples=50)
    @given(email=realistic_emails)
    def test_realistic_email_detected_exactly_once(self, email: str) -> None:
        found = find_credentials(_fill("Email address", email))
        assert len(found) == 1
        assert found[0].literal_value == email
        assert found[0].kind == "email"


# ---------------------------------------------------------------------------
# 命名
# ---------------------------------------------------------------------------

class TestGenerateEnvVarName:
    """generate_env_var_name のテスト。"""

    def test_role_scoped_name(self) -> None:
        assert generate_env_var_name("alice@acme.io", "email", "Email", "user") == "QA_USER_EMAIL"

    def test_default_prefix_without_role(self) -> None:
        assert generate_env_var_name("S3cure!pw", "password") == "QA_USER_PASSWORD"

    def test_admin_field_overrides_role(self) -> None:
        assert generate_env_var_name("x9@corp.io", "email", "Admin email", "editor") == "QA_ADMIN_EMAIL"

    def test_admin_value_overrides_role(self) -> None:
        assert generate_env_var_name("ADMIN@corp.io", "email", "Email", "editor") == "QA_ADMIN_EMAIL"

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(ValueError):
            generate_env_var_name("x", "phone")

    @given(role=role_names)
    def test_deterministic(self, role: str) -> None:
        first = generate_env_var_name("k@corp.io", "email", "Email", role)
        assert first == generate_env_var_name("k@corp.io", "email", "Email", role)
        if "admin" not in role.lower():
            assert first == f"QA_{role.upper()}_EMAIL"


# ---------------------------------------------------------------------------
# 重複排除・検出パイプライン
# ---------------------------------------------------------------------------

class TestDeduplicate:
    """deduplicate_env_vars / detect_env_vars のテスト。"""

    def test_same_name_first_wins(self) -> None:
        env_vars = [
            EnvVar("QA_USER_EMAIL", "a@corp.io", "email"),
            EnvVar("QA_USER_EMAIL", "b@corp.io", "email"),
        ]
        assert deduplicate_env_vars(env_vars) == [env_vars[0]]

    def test_same_value_first_wins(self) -> None:
        env_vars = [
            EnvVar("QA_USER_EMAIL", "a@corp.io", "email"),
            EnvVar("QA_ADMIN_EMAIL", "a@corp.io", "email"),
        ]
        assert deduplicate_env_vars(env_vars) == [env_vars[0]]

    def test_detect_env_vars_pipeline(self) -> None:
        env_vars = detect_env_vars(RECORDED_LOGIN, "user")
        assert env_vars == [
            EnvVar("QA_USER_EMAIL", "alice@acme.io", "email"),
            EnvVar("QA_USER_PASSWORD", "S3cure!pw", "password"),
        ]

    def test_repeated_fill_yields_one_variable(self) -> None:
        code = _fill("Email", "alice@acme.io") + _fill("Email", "alice@acme.io")
        assert len(detect_env_vars(code, "user")) == 1

    def test_no_names_collide(self) -> None:
        code = _fill("Email", "a1@corp.io") + _fill("Email", "b2@corp.io") + _fill("Password", "S3cure!pw")
        names = extract_env_var_names(detect_env_vars(code, "ops"))
        assert len(names) == len(set(names))

    def test_admin_field_under_other_role(self) -> None:
        env_vars = detect_env_vars(_fill("Admin Email", "k.mori@corp.io"), "user")
        assert env_vars == [EnvVar("QA_ADMIN_EMAIL", "k.mori@corp.io", "email")]

    @given(env_vars=colliding_env_vars)
    def test_idempotent_and_pairwise_unique(self, env_vars: list[EnvVar]) -> None:
        once = deduplicate_env_vars(env_vars)
        assert deduplicate_env_vars(once) == once
        assert len({v.name for v in once}) == len(once)
        assert len({v.value for v in once}) == len(once)


# ---------------------------------------------------------------------------
# 置換
# ---------------------------------------------------------------------------

class TestReplaceWithEnvVars:
    """replace_with_env_vars のテスト。"""

    def test_recorded_login_is_redacted(self) -> None:
        redacted = replace_with_env_vars(RECORDED_LOGIN, detect_env_vars(RECORDED_LOGIN, "user"))
        assert "alice@acme.io" not in redacted
        assert "S3cure!pw" not in redacted
        assert ".fill(process.env.QA_USER_EMAIL)" in redacted
        assert ".fill(process.env.QA_USER_PASSWORD)" in redacted

    def test_replaces_every_quote_style(self) -> None:
        code = "a('v@x.io'); b(\"v@x.io\"); c(`v@x.io`);"
        result = replace_with_env_vars(code, [EnvVar("QA_V_EMAIL", "v@x.io", "email")])
        assert result == "a(process.env.QA_V_EMAIL); b(process.env.QA_V_EMAIL); c(process.env.QA_V_EMAIL);"

    def test_mismatched_quotes_untouched(self) -> None:
        code = "a('v@x.io\");"
        assert replace_with_env_vars(code, [EnvVar("QA_V_EMAIL", "v@x.io", "email")]) == code

    def test_regex_metacharacters_are_literal(self) -> None:
        code = "fill('a+b@x.io'); fill('aab@x.io');"
        result = replace_with_env_vars(code, [EnvVar("QA_A_EMAIL", "a+b@x.io", "email")])
        assert result == "fill(process.env.QA_A_EMAIL); fill('aab@x.io');"

    def test_unquoted_occurrence_untouched(self) -> None:
        code = "// login as v@x.io\nfill('v@x.io');"
        result = replace_with_env_vars(code, [EnvVar("QA_V_EMAIL", "v@x.io", "email")])
        assert result.startswith("// login as v@x.io")


# ---------------------------------------------------------------------------
# 表示・検証ヘルパー
# ---------------------------------------------------------------------------

class TestDisplayHelpers:
    """format_env_var_for_display / validate_env_vars のテスト。"""

    def test_password_is_masked(self) -> None:
        line = format_env_var_for_display(EnvVar("QA_USER_PASSWORD", "S3cure!pw-long-value", "password"))
        assert line == "🔒 QA_USER_PASSWORD: ********"

    def test_short_password_mask_length(self) -> None:
        line = format_env_var_for_display(EnvVar("QA_USER_PASSWORD", "x9!", "password"))
        assert line.endswith(": ***")

    def test_long_email_truncated(self) -> None:
        line = format_env_var_for_display(EnvVar("QA_USER_EMAIL", "a.very.long.name@company.example", "email"))
        assert line == "📧 QA_USER_EMAIL: a.very.long.name@com..."

    def test_validate_splits_incomplete_entries(self) -> None:
        good = EnvVar("QA_USER_EMAIL", "a@corp.io", "email")
        bad = EnvVar("", "a@corp.io", "email")
        assert validate_env_vars([good, bad]) == ([good], [bad])

    def test_default_rules_contain_conservative_tokens(self) -> None:
        assert "admin" in DEFAULT_RULES.placeholder_tokens
        assert "user" in DEFAULT_RULES.placeholder_tokens
