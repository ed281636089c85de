"""Built-in text processing backed by an OpenAI chat model."""

import time
from typing import Any, Callable, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from .logging import get_logger

logger = get_logger(__name__)

OPENAI_SERVICE = "openai"
DEFAULT_TARGET_LANGUAGE = "English"
SYSTEM_PROMPT = "You are a helpful AI assistant that processes text according to specific instructions."

ACTION_INSTRUCTIONS = {
    "summarize": "Please provide a concise summary of the key points in 2-3 sentences.",
    "reply": (
        "Please generate a professional, courteous reply that acknowledges the content "
        "and provides a helpful response."
    ),
    "extract": (
        "Please extract and organize the following information:\n"
        "- Key points (3-5 bullet points)\n"
        "- Main entities mentioned\n"
        "- Overall sentiment (positive/negative/neutral)\n"
        "- Primary topics discussed"
    ),
}

CAPABILITIES = {
    "summarize": {
        "description": "Generate concise summaries of text content",
        "parameters": ["input", "model", "service"],
    },
    "reply": {
        "description": "Generate professional replies based on context",
        "parameters": ["input", "model", "service", "customPrompt"],
    },
    "extract": {
        "description": "Extract key information, entities, and insights from text",
        "parameters": ["input", "model", "service"],
    },
    "translate": {
        "description": "Translate text to different languages",
        "parameters": ["input", "targetLanguage", "model", "service"],
    },
}
SUPPORTED_MODELS = {OPENAI_SERVICE: ["gpt-3.5-turbo", "gpt-4", "gpt-4-turbo"]}
SUPPORTED_LANGUAGES = [
    "English", "Spanish", "French", "German", "Chinese", "Japanese",
    "Arabic", "Russian", "Portuguese", "Italian", "Dutch", "Korean",
]

ChatModelFactory = Callable[[str], BaseChatModel]


def build_prompt(
    action: str,
    text: str,
    target_language: Optional[str] = None,
    custom_prompt: Optional[str] = None
) -> str:
    """Prompt for one text-processing action; a custom prompt replaces it entirely."""
    if custom_prompt:
        return custom_prompt

    prompt = (
        "Please process the following text according to the specified action. "
        "Provide a clear, concise response.\n\n"
        f"Text to process:\n\"{text}\"\n\n"
        f"Action: {action}"
    )
    if action == "translate":
        instruction = (
            f"Please translate the text to {target_language or DEFAULT_TARGET_LANGUAGE}. "
            "Maintain the original meaning and tone while ensuring natural language flow "
            "in the target language."
        )
    else:
        instruction = ACTION_INSTRUCTIONS.get(action)
    return f"{prompt}\n\n{instruction}" if instruction else prompt


class AIService:
    """Runs summarize, reply, extract and translate requests against OpenAI."""

    def __init__(
        self,
        api_key: Optional[str],
        default_model: str = "gpt-3.5-turbo",
        max_tokens: int = 2048,
        temperature: float = 0.7,
        chat_model_factory: Optional[ChatModelFactory] = None
    ):
        self.api_key = api_key or None
        self.default_model = default_model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.chat_model_factory = chat_model_factory or self._create_chat_model

    def _create_chat_model(self, model: str) -> BaseChatModel:
        return ChatOpenAI(
            model=model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            api_key=self.api_key
        )

    def is_enabled(self, service: str = OPENAI_SERVICE) -> bool:
        return service == OPENAI_SERVICE and self.api_key is not None

    def enabled_services(self) -> List[str]:
        return [OPENAI_SERVICE] if self.is_enabled() else []

    def health_check(self) -> Dict[str, bool]:
        return {OPENAI_SERVICE: self.is_enabled()}

    async def process(
        self,
        action: str,
        text: str,
        model: Optional[str] = None,
        target_language: Optional[str] = None,
        custom_prompt: Optional[str] = None,
        service: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Process text with the chat model.

        Failures are reported in the returned dict (``success`` false and an
        ``error`` message), never raised.
        """
        started = time.perf_counter()
        service = service or OPENAI_SERVICE
        model = model or self.default_model

        try:
            if service != OPENAI_SERVICE:
                raise ValueError(f"Service {service} is not available or not configured")
            if self.api_key is None:
                raise ValueError("OPENAI API key not configured. Please set OPENAI_API_KEY in your environment.")

            messages = [
                SystemMessage(content=SYSTEM_PROMPT),
                HumanMessage(content=build_prompt(action, text, target_language, custom_prompt))
            ]
            response = await self.chat_model_factory(model).ainvoke(messages)
        except Exception as e:
            logger.warning(f"LLM {action} with {service}/{model} failed: {e}")
            return {
                "success": False,
                "result": None,
                "service": service,
                "model": model,
                "processing_time_ms": int((time.perf_counter() - started) * 1000),
                "error": str(e) or type(e).__name__
            }

        usage = getattr(response, "usage_metadata", None) or {}
        content = response.content
        return {
            "success": True,
            "result": content if isinstance(content, str) else str(content),
            "service": service,
            "model": model,
            "tokens_used": usage.get("total_tokens"),
            "processing_time_ms": int((time.perf_counter() - started) * 1000)
        }
