import pytest

from esm_infra.core.settings import StackSettings, load_settings


def test_defaults_match_production_stack():
    settings = load_settings(environ={})

    assert settings == StackSettings()
    assert settings.owner == "lannonbr"
    assert settings.branch == "main"
    assert settings.environment() == (None, None)


def test_environment_variables_are_read():
    settings = load_settings(
        environ={
            "ESM_INFRA_OWNER": "someone",
            "ESM_INFRA_BRANCH": "release",
            "CDK_DEFAULT_ACCOUNT": "123456789012",
            "CDK_DEFAULT_REGION": "us-east-1",
        }
    )

    assert settings.owner == "someone"
    assert settings.branch == "release"
    assert settings.environment() == ("123456789012", "us-east-1")


def test_precedence_override_then_context_then_env():
    context = {"owner": "from-context", "branch": "from-context"}
    settings = load_settings(
        context.get,
        environ={"ESM_INFRA_OWNER": "from-env", "ESM_INFRA_PROJECT": "from-env"},
        branch="from-cli",
    )

    assert settings.branch == "from-cli"
    assert settings.owner == "from-context"
    assert settings.project == "from-env"


def test_blank_values_fall_through():
    settings = load_settings(
        {"owner": "  "}.get,
        environ={"ESM_INFRA_OWNER": ""},
        stack_name=None,
    )

    assert settings.owner == "lannonbr"
    assert settings.stack_name == "EsmCheckerStack"


def test_unknown_override_is_rejected():
    with pytest.raises(TypeError, match="colour"):
        load_settings(environ={}, colour="blue")
