"""Tests for the embed, rag and llm HTTP clients against mocked backends."""
import json

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.gemini.EmbedClientGemini import EmbedClientGemini
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.gemini.LLMClientGemini import LLMClientGemini
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.models.VectorPoint import VectorPayload, VectorPoint
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.exceptions import RateLimitError, UpstreamError


class Recorder:
    """Collects requests and answers them from a queue of responses."""

    def __init__(self, *responses: httpx.Response):
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        template = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        # fresh response per request, the last one repeats
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


def gemini_embed_handler(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"embeddings": [{"values": [0.5, 0.5]} for _ in body["requests"]]})


def gemini_reply(text: str = "Xin chào") -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "candidates": [{"content": {"parts": [{"text": f" {text} "}]}, "finishReason": "STOP"}],
            "usageMetadata": {"promptTokenCount": 40, "candidatesTokenCount": 12},
        },
    )


def make_point(point_id: str = "p-1", tenant: str = "acme") -> VectorPoint:
    return VectorPoint(
        id=point_id,
        vector=[0.1, 0.2],
        payload=VectorPayload(
            tenant=tenant,
            document_id="doc-1",
            category="faq",
            document_title="FAQ",
            content="text",
            chunk_index=0,
        ),
    )


class TestEmbedClientGemini:
    """Tests for the Gemini embedding client."""

    @pytest.mark.asyncio
    async def test_embed_single_text(self, helper_config):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return gemini_embed_handler(request)

        client = EmbedClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))

        vector = await client.do_embed("giá gói Pro")

        assert vector == [0.5, 0.5]
        request = requests[0]
        assert request.url.path == "/v1beta/models/gemini-embedding-001:batchEmbedContents"
        assert request.headers["x-goog-api-key"] == "gemini-test"
        body = json.loads(request.content)
        assert body["requests"][0]["content"]["parts"][0]["text"] == "giá gói Pro"
        assert body["requests"][0]["outputDimensionality"] == 768
        await client.close()

    @pytest.mark.asyncio
    async def test_batch_split_by_limit(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_BATCH_LIMIT", "4")
        sizes: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sizes.append(len(json.loads(request.content)["requests"]))
            return gemini_embed_handler(request)

        client = EmbedClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))

        vectors = await client.do_embed_batch([f"t{i}" for i in range(10)])

        assert len(vectors) == 10
        assert sizes == [4, 4, 2]
        await client.close()

    @pytest.mark.asyncio
    async def test_empty_batch_sends_nothing(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={}))
        client = EmbedClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_embed_batch([]) == []
        assert recorder.requests == []
        await client.close()

    @pytest.mark.asyncio
    async def test_vector_count_mismatch(self, helper_config):
        client = EmbedClientGemini(helper_config=helper_config)
        await client.boot(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"embeddings": [{"values": [1.0]}]}))
        )

        with pytest.raises(UpstreamError):
            await client.do_embed_batch(["a", "b"])
        await client.close()

    @pytest.mark.asyncio
    async def test_backend_error_raises(self, helper_config):
        client = EmbedClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom")))

        with pytest.raises(UpstreamError) as exc_info:
            await client.do_embed("a")
        assert exc_info.value.status_code == 500
        await client.close()

    @pytest.mark.asyncio
    async def test_vector_size_from_config(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_GEMINI_VECTOR_SIZE", "1536")
        client = EmbedClientGemini(helper_config=helper_config)

        assert await client.do_fetch_embedding_vector_size() == (1536, "Cosine")

    def test_missing_api_key(self, helper_config, monkeypatch):
        monkeypatch.delenv("EMBED_GEMINI_API_KEY")

        with pytest.raises(ValueError):
            EmbedClientGemini(helper_config=helper_config)


class TestEmbedClientOllama:
    """Tests for the Ollama embedding client."""

    @pytest.mark.asyncio
    async def test_embed_batch(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={"embeddings": [[1.0, 0.0], [0.0, 1.0]]}))
        client = EmbedClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        vectors = await client.do_embed_batch(["a", "b"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        assert str(recorder.requests[0].url) == "http://ollama.test/api/embed"
        assert recorder.bodies()[0] == {"model": "nomic-embed-text", "input": ["a", "b"], "truncate": True}
        await client.close()

    @pytest.mark.asyncio
    async def test_fetch_vector_size(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={"model_info": {"nomic-bert.embedding_length": 768}}))
        client = EmbedClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_fetch_embedding_vector_size() == (768, "Cosine")
        assert recorder.requests[0].url.path == "/api/show"
        await client.close()

    @pytest.mark.asyncio
    async def test_vector_size_probed_when_not_reported(self, helper_config):
        recorder = Recorder(
            httpx.Response(200, json={"model_info": {}}),
            httpx.Response(200, json={"embeddings": [[0.1, 0.2, 0.3]]}),
        )
        client = EmbedClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_fetch_embedding_vector_size() == (3, "Cosine")
        assert [r.url.path for r in recorder.requests] == ["/api/show", "/api/embed"]
        await client.close()

    @pytest.mark.asyncio
    async def test_vector_size_pinned_by_config(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_OLLAMA_VECTOR_SIZE", "1024")
        recorder = Recorder(httpx.Response(500))
        client = EmbedClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_fetch_embedding_vector_size() == (1024, "Cosine")
        assert recorder.requests == []
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_response(self, helper_config):
        client = EmbedClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"embeddings": []})))

        with pytest.raises(ValueError):
            await client.do_embed("a")
        await client.close()


class TestRAGClientQdrant:
    """Tests for the Qdrant vector store client."""

    @pytest.mark.asyncio
    async def test_search_always_filters_by_tenant(self, helper_config):
        recorder = Recorder(
            httpx.Response(
                200,
                json={
                    "result": [
                        {"id": "b", "score": 0.5, "payload": {"content": "second", "document_title": "B"}},
                        {"id": "a", "score": 0.9, "payload": {"content": "first", "document_title": "A"}},
                    ]
                },
            )
        )
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        hits = await client.do_search([0.1, 0.2], tenant="acme", top_k=3)

        assert [h.id for h in hits] == ["a", "b"]
        assert hits[0].get_document_title() == "A"
        request = recorder.requests[0]
        assert request.url.path == "/collections/kb_test/points/search"
        body = recorder.bodies()[0]
        assert body["filter"]["must"] == [{"key": "tenant", "match": {"value": "acme"}}]
        assert body["limit"] == 3
        assert body["with_payload"] is True
        await client.close()

    @pytest.mark.asyncio
    async def test_search_with_category(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={"result": []}))
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_search([0.1], tenant="acme", category="pricing") == []
        assert recorder.bodies()[0]["filter"]["must"] == [
            {"key": "tenant", "match": {"value": "acme"}},
            {"key": "category", "match": {"value": "pricing"}},
        ]
        await client.close()

    @pytest.mark.asyncio
    async def test_search_without_tenant_rejected(self, helper_config):
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(Recorder(httpx.Response(200, json={}))))

        with pytest.raises(ValueError):
            await client.do_search([0.1], tenant="")
        await client.close()

    @pytest.mark.asyncio
    async def test_upsert(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={"status": "ok"}))
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        await client.do_upsert_points([make_point()])

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/collections/kb_test/points"
        assert request.url.params["wait"] == "true"
        point = recorder.bodies()[0]["points"][0]
        assert point["id"] == "p-1"
        assert point["payload"]["tenant"] == "acme"
        await client.close()

    @pytest.mark.asyncio
    async def test_upsert_rejects_empty_tenant(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={}))
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        with pytest.raises(ValueError):
            await client.do_upsert_points([make_point(tenant="")])
        assert recorder.requests == []
        await client.close()

    @pytest.mark.asyncio
    async def test_ensure_collection_creates_with_indexes(self, helper_config):
        recorder = Recorder(
            httpx.Response(200, json={"result": {"exists": False}}),
            httpx.Response(200, json={"result": True}),
        )
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_ensure_collection(vector_size=768) is True

        paths = [r.url.path for r in recorder.requests]
        assert paths[0] == "/collections/kb_test/exists"
        assert paths[1] == "/collections/kb_test"
        assert recorder.bodies()[0] == {"vectors": {"size": 768, "distance": "Cosine"}}
        indexed = [b["field_name"] for b in recorder.bodies()[1:]]
        assert indexed == ["tenant", "category", "document_id"]
        await client.close()

    @pytest.mark.asyncio
    async def test_ensure_collection_existing(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={"result": {"exists": True}}))
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_ensure_collection(vector_size=768) is False
        assert len(recorder.requests) == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_delete_by_document(self, helper_config):
        recorder = Recorder(httpx.Response(200, json={"status": "ok"}))
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        await client.do_delete_by_document_id("doc-9")
        await client.do_delete_points([])

        assert len(recorder.requests) == 1
        assert recorder.bodies()[0] == {"filter": {"must": [{"key": "document_id", "match": {"value": "doc-9"}}]}}
        await client.close()

    @pytest.mark.asyncio
    async def test_api_key_header(self, helper_config, monkeypatch):
        monkeypatch.setenv("RAG_QDRANT_API_KEY", "secret")
        recorder = Recorder(httpx.Response(200, text="ok"))
        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        assert await client.do_healthcheck() is True
        assert recorder.requests[0].headers["api-key"] == "secret"
        await client.close()

    @pytest.mark.asyncio
    async def test_unreachable_backend_raises_upstream_error(self, helper_config):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = RAGClientQdrant(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(refuse))

        with pytest.raises(UpstreamError, match="unreachable"):
            await client.do_search(vector=[0.1, 0.2], tenant="acme")
        await client.close()

    @pytest.mark.asyncio
    async def test_request_before_boot(self, helper_config):
        client = RAGClientQdrant(helper_config=helper_config)

        with pytest.raises(Exception, match="boot"):
            await client.do_healthcheck()


class TestLLMClientRetry:
    """Tests for rate limit handling of the generation client."""

    @pytest.fixture
    def sleeps(self, monkeypatch):
        recorded: list[float] = []

        async def fake_sleep(delay):
            recorded.append(delay)

        monkeypatch.setattr("shared.clients.llm.LLMClientInterface.asyncio.sleep", fake_sleep)
        return recorded

    @pytest.mark.asyncio
    async def test_retries_until_success(self, helper_config, sleeps):
        recorder = Recorder(
            httpx.Response(429, text="Too Many Requests"),
            httpx.Response(429, text="Too Many Requests"),
            gemini_reply("Xin chào"),
        )
        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        response = await client.do_complete("system", "hello")

        assert response.text == "Xin chào"
        assert sleeps == [5.0, 10.0]
        assert len(recorder.requests) == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, helper_config, sleeps):
        recorder = Recorder(httpx.Response(429, text="Too Many Requests"))
        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        with pytest.raises(RateLimitError) as exc_info:
            await client.do_complete("system", "hello")

        assert exc_info.value.attempts == 4
        assert exc_info.value.status_code == 429
        assert sleeps == [5.0, 10.0, 20.0]
        assert len(recorder.requests) == 4
        await client.close()

    @pytest.mark.asyncio
    async def test_quota_marker_counts_as_rate_limit(self, helper_config, sleeps):
        recorder = Recorder(
            httpx.Response(400, json={"error": {"status": "RESOURCE_EXHAUSTED"}}),
            gemini_reply(),
        )
        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        await client.do_complete("system", "hello")

        assert sleeps == [5.0]
        await client.close()

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, helper_config, sleeps):
        recorder = Recorder(httpx.Response(500, text="internal"))
        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        with pytest.raises(UpstreamError) as exc_info:
            await client.do_complete("system", "hello")

        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.status_code == 500
        assert sleeps == []
        assert len(recorder.requests) == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self, helper_config, sleeps):
        attempts: list[httpx.Request] = []

        def time_out(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(time_out))

        with pytest.raises(UpstreamError, match="unreachable"):
            await client.do_complete("system", "hello")

        assert sleeps == []
        assert len(attempts) == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_custom_retry_settings(self, helper_config, sleeps, monkeypatch):
        monkeypatch.setenv("LLM_MAX_RETRIES", "1")
        monkeypatch.setenv("LLM_RETRY_DELAY", "0.5")
        recorder = Recorder(httpx.Response(429, text=""))
        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        with pytest.raises(RateLimitError):
            await client.do_complete("system", "hello")
        assert sleeps == [0.5]
        await client.close()


class TestLLMClientPayloads:
    """Tests for request building and response parsing of the generation backends."""

    @pytest.mark.asyncio
    async def test_gemini_request_and_parse(self, helper_config):
        recorder = Recorder(gemini_reply("Gói Pro giá 500.000đ"))
        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        response = await client.do_chat(
            "be helpful",
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}, {"role": "user", "content": "price?"}],
            temperature=0.3,
            max_tokens=200,
        )

        assert response.text == "Gói Pro giá 500.000đ"
        assert response.token_usage == 52
        assert response.finish_reason == "STOP"
        request = recorder.requests[0]
        assert request.url.path == "/v1beta/models/gemini-2.5-flash:generateContent"
        body = recorder.bodies()[0]
        assert body["systemInstruction"]["parts"][0]["text"] == "be helpful"
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 200}
        await client.close()

    @pytest.mark.asyncio
    async def test_gemini_without_candidates(self, helper_config):
        client = LLMClientGemini(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"promptFeedback": {}})))

        with pytest.raises(UpstreamError):
            await client.do_complete("system", "hello")
        await client.close()

    @pytest.mark.asyncio
    async def test_ollama_request_and_parse(self, helper_config, monkeypatch):
        monkeypatch.setenv("LLM_CHAT_MODEL", "qwen2.5")
        recorder = Recorder(
            httpx.Response(
                200,
                json={
                    "message": {"role": "assistant", "content": "Chào bạn"},
                    "prompt_eval_count": 30,
                    "eval_count": 5,
                    "done_reason": "stop",
                },
            )
        )
        client = LLMClientOllama(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(recorder))

        response = await client.do_complete("system", "xin chào", temperature=0.3, max_tokens=100)

        assert response.text == "Chào bạn"
        assert response.token_usage == 35
        body = recorder.bodies()[0]
        assert body["model"] == "qwen2.5"
        assert body["stream"] is False
        assert body["messages"][0] == {"role": "system", "content": "system"}
        assert body["options"] == {"temperature": 0.3, "num_predict": 100}
        await client.close()


class TestClientManagers:
    """Tests for engine selection from <TYPE>_ENGINE."""

    def test_defaults(self, helper_config, monkeypatch):
        for key in ("EMBED_ENGINE", "LLM_ENGINE", "RAG_ENGINE"):
            monkeypatch.delenv(key, raising=False)

        assert isinstance(EmbedClientManager(helper_config).get_client(), EmbedClientGemini)
        assert isinstance(LLMClientManager(helper_config).get_client(), LLMClientGemini)
        assert isinstance(RAGClientManager(helper_config).get_client(), RAGClientQdrant)

    def test_engine_name_is_case_insensitive(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_ENGINE", "OLLAMA")
        monkeypatch.setenv("LLM_ENGINE", "ollama")

        assert isinstance(EmbedClientManager(helper_config).get_client(), EmbedClientOllama)
        assert isinstance(LLMClientManager(helper_config).get_client(), LLMClientOllama)

    def test_unknown_engine(self, helper_config, monkeypatch):
        monkeypatch.setenv("RAG_ENGINE", "milvus")

        with pytest.raises(ValueError, match="Unsupported rag engine"):
            RAGClientManager(helper_config)

    def test_blank_engine(self, helper_config, monkeypatch):
        monkeypatch.setenv("LLM_ENGINE", "   ")

        with pytest.raises(ValueError, match="No llm engine"):
            LLMClientManager(helper_config)

    def test_engine_config_is_validated(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_ENGINE", "ollama")
        monkeypatch.delenv("EMBED_OLLAMA_BASE_URL")

        with pytest.raises(ValueError, match="EMBED_OLLAMA_BASE_URL"):
            EmbedClientManager(helper_config)
