import pytest

from secretspan.engine import PASSWORD_NOT_SET, SecretEngine
from secretspan.errors import PasswordCancelled, ScanError
from secretspan.models import EngineConfig


def test_empty_token_rejected_on_construction():
    with pytest.raises(ScanError):
        SecretEngine(EngineConfig(token=""))


def test_wrap_honours_exclude_end(make_engine):
    assert make_engine().wrap("QUJD") == "sec:QUJD:sec"
    assert make_engine(exclude_end=True).wrap("QUJD") == "sec:QUJD"


@pytest.mark.asyncio
async def test_concrete_scenario_round_trip(make_engine, prompt_with):
    engine = make_engine()
    prompt = prompt_with("pw")

    wrapped = await engine.encrypt_text("abcd", prompt)
    text = f"user={wrapped}"

    [match] = engine.scan(text)
    assert match.matched_text == wrapped
    assert engine.scanner.remove_tokens(match.matched_text) == match.payload
    assert engine.decrypt_span(match.payload, "pw") == "abcd"


def test_empty_span_round_trip(make_engine):
    engine = make_engine()
    text = engine.wrap(engine.encrypt_span("", "pw"))

    [match] = engine.scan(text)
    assert engine.decrypt_span(match.payload, "pw") == ""


@pytest.mark.asyncio
async def test_encrypt_text_skips_empty_and_existing_spans(make_engine, prompt_with):
    engine = make_engine()
    prompt = prompt_with("pw")

    assert await engine.encrypt_text("", prompt) is None
    assert await engine.encrypt_text("already sec:QUJD:sec", prompt) is None
    assert prompt.calls == 0


@pytest.mark.asyncio
async def test_encrypt_text_accepts_bare_start_token(make_engine, prompt_with):
    engine = make_engine()
    prompt = prompt_with("pw")

    wrapped = await engine.encrypt_text("see sec:", prompt)

    assert wrapped is not None
    assert wrapped.startswith("sec:") and wrapped.endswith(":sec")
    text, failures = await engine.decrypt_text(wrapped, prompt)
    assert text == "see sec:"
    assert failures == []


@pytest.mark.asyncio
async def test_decrypt_text_replaces_all_spans(make_engine, prompt_with):
    engine = make_engine()
    prompt = prompt_with("pw")
    first = await engine.encrypt_text("alpha", prompt)
    second = await engine.encrypt_text("beta-longer-value", prompt)
    text = f"a = {first}, b = {second}\nc = {first}\n"

    result, failures = await engine.decrypt_text(text, prompt)

    assert result == "a = alpha, b = beta-longer-value\nc = alpha\n"
    assert failures == []
    assert prompt.calls == 1


@pytest.mark.asyncio
async def test_decrypt_text_keeps_failed_spans(make_engine, prompt_with):
    engine = make_engine()
    good = engine.wrap(engine.encrypt_span("visible", "pw"))
    bad = engine.wrap(engine.encrypt_span("hidden", "other"))
    text = f"{bad} {good} sec:garbage:sec"

    result, failures = await engine.decrypt_text(text, prompt_with("pw"))

    assert result == f"{bad} visible sec:garbage:sec"
    assert len(failures) == 2
    assert all(f.error for f in failures)


@pytest.mark.asyncio
async def test_decrypt_text_without_spans_does_not_prompt(make_engine, prompt_with):
    engine = make_engine()
    prompt = prompt_with("pw")

    assert await engine.decrypt_text("plain text", prompt) == ("plain text", [])
    assert prompt.calls == 0


@pytest.mark.asyncio
async def test_preview_without_password(make_engine):
    engine = make_engine()
    text = engine.wrap(engine.encrypt_span("x", "pw"))

    [item] = await engine.preview(text)

    assert not item.ok
    assert item.error == PASSWORD_NOT_SET


@pytest.mark.asyncio
async def test_preview_reports_per_span_results(make_engine, prompt_with):
    engine = make_engine()
    good = engine.wrap(engine.encrypt_span("shown", "pw"))
    text = f"one = {good}\ntwo = sec:broken:sec\n"

    previews = await engine.preview(text, prompt_with("pw"))

    assert [p.ok for p in previews] == [True, False]
    assert previews[0].plaintext == "shown"
    assert previews[1].match.line_number == 2

    # the password is now cached, so a prompt-less preview works too
    previews = await engine.preview(text)
    assert previews[0].plaintext == "shown"


@pytest.mark.asyncio
async def test_copy_secrets_joins_and_skips_failures(make_engine, prompt_with):
    engine = make_engine(copy_separator=", ")
    a = engine.wrap(engine.encrypt_span("a", "pw"))
    b = engine.wrap(engine.encrypt_span("b", "pw"))
    text = f"{a} sec:broken:sec {b}"

    assert await engine.copy_secrets(text, prompt_with("pw")) == "a, b"
    assert await engine.copy_secrets(text, prompt_with("pw"), separator="|") == "a|b"


@pytest.mark.asyncio
async def test_cancelled_prompt_aborts_operation(make_engine, prompt_with):
    engine = make_engine()
    text = engine.wrap(engine.encrypt_span("x", "pw"))

    with pytest.raises(PasswordCancelled):
        await engine.decrypt_text(text, prompt_with(None))
    assert not engine.is_password_armed()


@pytest.mark.asyncio
async def test_password_lifecycle(make_engine, prompt_with):
    engine = make_engine(remember_period=-1)
    prompt = prompt_with("pw")

    await engine.set_password(prompt)
    assert engine.is_password_armed()
    assert await engine.ensure_password(prompt) == "pw"
    assert prompt.calls == 1

    engine.forget_password()
    assert not engine.is_password_armed()


@pytest.mark.asyncio
async def test_never_remember_reprompts(make_engine, prompt_with):
    engine = make_engine(remember_period=0)
    prompt = prompt_with("pw")

    await engine.set_password(prompt)
    assert not engine.is_password_armed()

    await engine.ensure_password(prompt)
    assert prompt.calls == 2


@pytest.mark.asyncio
async def test_reload_switches_token_and_forgets(make_engine, prompt_with):
    engine = make_engine(remember_period=-1)
    await engine.set_password(prompt_with("pw"))

    engine.reload(EngineConfig(token="vault", kdf_iterations=1000))

    assert not engine.is_password_armed()
    assert engine.wrap("QUJD") == "vault:QUJD:vault"
    assert engine.scan("sec:QUJD:sec") == []


def test_reload_rejects_bad_token_and_keeps_state(make_engine):
    engine = make_engine()

    with pytest.raises(ScanError):
        engine.reload(EngineConfig(token=""))
    assert engine.config.token == "sec"
