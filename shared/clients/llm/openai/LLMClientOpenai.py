from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.errors.errors import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "OpenAI"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    def get_chat_payload(self, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        return {
            "model": self.chat_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    ##########################################
    ################ PARSERS #################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract vectors from {"data": [{"embedding": [...], "index": 0}, ...]}.

        Items are sorted by their index so the output matches the input order.
        """
        data = response_data.get("data")
        if not data:
            raise ProviderError(
                "OpenAI response does not contain embeddings. "
                "Response keys: %s" % list(response_data.keys()),
                operation="embed",
            )
        items = sorted(data, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]

    def extract_chat_response(self, response_data: dict) -> str:
        """Extract choices[0].message.content; a missing content yields ""."""
        choices = response_data.get("choices")
        if not choices:
            raise ProviderError(
                "OpenAI chat response does not contain any choices. "
                "Response keys: %s" % list(response_data.keys()),
                operation="complete",
            )
        return (choices[0].get("message") or {}).get("content") or ""
