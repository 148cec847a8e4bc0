from chat_core.domain.exceptions import ConfigurationError, ProviderError, RenderError
from chat_core.domain.models import ChatSession
from chat_core.pipeline import ChatResponsePipeline, ProviderRouter
from chat_core.providers.registry import DEFAULT_DESCRIPTORS


class CountingClient:
    def __init__(self, descriptor, reply="Hello **there**", error=None):
        self.descriptor = descriptor
        self.name = descriptor.id
        self.reply = reply
        self.error = error
        self.calls = 0

    def send_chat(self, turns):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reply

    def send_translate(self, text, source="auto", target="English"):
        return text


def make_pipeline(with_key=True, **client_kwargs):
    descriptors = dict(DEFAULT_DESCRIPTORS)
    if with_key:
        descriptors["openai"] = descriptors["openai"].with_api_key("sk-" + "x" * 30)
    clients = {pid: CountingClient(d, **client_kwargs) for pid, d in descriptors.items()}
    router = ProviderRouter(descriptors, active="openai", clients=clients)
    return ChatResponsePipeline(router), clients["openai"]


def test_missing_credential_short_circuits():
    pipeline, client = make_pipeline(with_key=False)
    session = ChatSession(id="c1")
    result = pipeline.respond(session, "hello")
    assert client.calls == 0
    assert result.ok is False
    assert isinstance(result.error, ConfigurationError)
    assert result.context == ()
    assert result.records == []
    assert session.messages == []
    assert len(result.display) == 1
    notice = result.display[0]
    assert notice.sender == "system"
    assert notice.is_html is True
    assert "Please configure your openai API key" in notice.content


def test_successful_respond_renders_and_records():
    pipeline, client = make_pipeline()
    session = ChatSession(id="c1")
    result = pipeline.respond(session, "<i>hi</i>")
    assert client.calls == 1
    assert result.ok is True
    user_msg, ai_msg = result.display
    assert user_msg.sender == "user"
    assert user_msg.is_html is False
    assert user_msg.content == "<i>hi</i>"
    assert ai_msg.sender == "ai"
    assert ai_msg.is_html is True
    assert ai_msg.content == "<p>Hello <strong>there</strong></p>"
    assert [(t.role, t.content) for t in result.context] == [
        ("user", "<i>hi</i>"),
        ("assistant", "Hello **there**"),
    ]
    assert [(m.sender, m.content) for m in session.messages] == [
        ("user", "<i>hi</i>"),
        ("ai", "Hello **there**"),
    ]
    assert result.records == session.messages
    assert not any(m.is_error for m in session.messages)


def test_provider_error_becomes_ai_message():
    error = ProviderError("OpenAI API error: 429 - Rate limit reached", status=429)
    pipeline, _ = make_pipeline(error=error)
    session = ChatSession(id="c1")
    result = pipeline.respond(session, "hello")
    assert result.ok is False
    assert result.error is error
    assert session.messages[-1].sender == "ai"
    assert session.messages[-1].is_error is True
    assert session.messages[-1].content == (
        "Sorry, I encountered an error: OpenAI API error: 429 - Rate limit reached"
    )
    # 失败的一轮只留下 user Turn
    assert [t.role for t in result.context] == ["user"]


def test_model_markup_is_sanitized():
    pipeline, _ = make_pipeline(reply='<img src="x" onerror="alert(1)"><script>steal()</script>ok')
    result = pipeline.respond(ChatSession(id="c1"), "hi")
    content = result.display[-1].content
    assert "onerror" not in content
    assert "<script" not in content


def test_render_failure_falls_back_to_plain_text(monkeypatch):
    def broken(text, highlight_blocks=True):
        raise RenderError("converter exploded")

    monkeypatch.setattr("chat_core.rendering.renderer.markdown_to_html", broken)
    pipeline, _ = make_pipeline()
    result = pipeline.respond(ChatSession(id="c1"), "hi")
    assert result.ok is True
    assert result.display[-1].is_html is False
    assert result.display[-1].content == "Hello **there**"


def test_render_history():
    pipeline, _ = make_pipeline()
    session = ChatSession(id="c1")
    session.add_message("q", "user")
    session.add_message("*a*", "ai")
    display = pipeline.render_history(session)
    assert [(d.sender, d.is_html) for d in display] == [("user", False), ("ai", True)]
    assert display[1].content == "<p><em>a</em></p>"
