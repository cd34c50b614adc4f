"""Pytest configuration and fixtures."""
import logging
import os
import shutil
import tempfile
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.models.LLMResponse import LLMResponse
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.retrieval import RetrievedFragment
from shared.store.DocumentRepository import DocumentRepository
from shared.store.database import Database


@pytest.fixture(autouse=True)
def base_env(monkeypatch):
    """Minimal environment every client and the API need."""
    monkeypatch.setenv("APP_API_KEY", "test-key")
    monkeypatch.setenv("EMBED_GEMINI_API_KEY", "gemini-test")
    monkeypatch.setenv("LLM_GEMINI_API_KEY", "gemini-test")
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama.test")
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama.test")
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", "http://qdrant.test")
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", "kb_test")


@pytest.fixture
def helper_config():
    return HelperConfig(logger=logging.getLogger("knowledge_bridge.tests"))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path)


@pytest_asyncio.fixture
async def database(temp_dir):
    """Fresh SQLite document store per test."""
    db = Database(url=f"sqlite+aiosqlite:///{os.path.join(temp_dir, 'test.db')}")
    await db.init_db()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def repository(database, helper_config):
    return DocumentRepository(database=database, helper_config=helper_config)


@pytest.fixture
def mock_embed_client():
    """Embed client returning one 4-dim vector per input text."""
    client = Mock(spec=EmbedClientInterface)
    client.do_embed = AsyncMock(return_value=[0.1, 0.2, 0.3, 0.4])
    client.do_embed_batch = AsyncMock(side_effect=lambda texts: [[0.1, 0.2, 0.3, 0.4] for _ in texts])
    client.do_healthcheck = AsyncMock(return_value=True)
    client.get_client_type = Mock(return_value="embed")
    client.get_engine_name = Mock(return_value="gemini")
    return client


@pytest.fixture
def mock_rag_client():
    client = Mock(spec=RAGClientInterface)
    client.do_upsert_points = AsyncMock(return_value=None)
    client.do_search = AsyncMock(return_value=[])
    client.do_delete_by_document_id = AsyncMock(return_value=None)
    client.do_delete_points = AsyncMock(return_value=None)
    client.do_healthcheck = AsyncMock(return_value=True)
    client.get_client_type = Mock(return_value="rag")
    client.get_engine_name = Mock(return_value="qdrant")
    return client


@pytest.fixture
def mock_llm_client():
    client = Mock(spec=LLMClientInterface)
    client.do_chat = AsyncMock(
        return_value=LLMResponse(text="Gói Pro có giá 500.000đ mỗi tháng.", token_usage=120, finish_reason="STOP")
    )
    return client


@pytest.fixture
def sample_fragments():
    """Fragments as returned by a vector search, best first."""
    return [
        RetrievedFragment(
            id="p-1",
            score=0.92,
            content="Gói Pro có giá 500.000đ mỗi tháng.",
            metadata={"document_title": "Bảng giá", "document_id": "doc-1", "category": "pricing"},
        ),
        RetrievedFragment(
            id="p-2",
            score=0.85,
            content="Gói Basic miễn phí cho 1 người dùng.",
            metadata={"document_title": "Bảng giá", "document_id": "doc-1", "category": "pricing"},
        ),
        RetrievedFragment(
            id="p-3",
            score=0.78,
            content="Thanh toán qua chuyển khoản hoặc thẻ.",
            metadata={"document_title": "Thanh toán", "document_id": "doc-2", "category": "pricing"},
        ),
        RetrievedFragment(
            id="p-4",
            score=0.40,
            content="Liên hệ để được hỗ trợ.",
            metadata={"document_title": "FAQ", "document_id": "doc-3", "category": "faq"},
        ),
    ]


@pytest.fixture
def long_text() -> str:
    """Text that segments into roughly one fragment per paragraph (about 40)."""
    para = (
        "Hệ thống hỗ trợ khách hàng trả lời tự động dựa trên tài liệu nội bộ của doanh nghiệp. "
        "Mỗi đoạn văn mô tả một tính năng khác nhau của sản phẩm và cách sử dụng nó. "
        "Nội dung này được dùng để kiểm tra việc chia nhỏ văn bản thành các đoạn có độ dài hợp lý. "
        "Thêm một câu nữa để đoạn văn đủ dài cho việc kiểm tra."
    )
    return "\n\n".join(f"{para} ({i})" for i in range(40))
