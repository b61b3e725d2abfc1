from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.errors.errors import ProviderError
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    """Embedding and completion provider.

    Embeddings: do_embed() sends all texts in one batched request.
    Completions: do_complete() assembles system prompt, history and the new
    user message and returns the assistant text.
    """

    unreachable_error = ProviderError
    request_error = ProviderError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_EMBED_MODEL", default="text-embedding-3-small")
        self.embed_dimension = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_EMBED_DIMENSION", default=1536))

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default="gpt-4o")
        self.max_tokens = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MAX_TOKENS", default=4096))
        self.temperature = float(helper_config.get_number_val(f"{self.get_client_type().upper()}_TEMPERATURE", default=0.7))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """Returns the endpoint path for embedding requests (e.g. "/embeddings")."""
        pass

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).
            temperature (float): Sampling temperature.
            max_tokens (int): Upper bound of generated tokens.
        """
        pass

    ##########################################
    ################ PARSERS #################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ProviderError: If the response holds no usable embeddings.
        """
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed one or more texts with a single request.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ProviderError: If the request fails or the reply count does not
                match the input count.
        """
        texts = [texts] if isinstance(texts, str) else texts
        if not texts:
            return []
        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=self.get_embed_payload(texts),
            raise_on_error=True,
            operation="embed",
        )
        embeddings = self.extract_embeddings_from_response(response.json())
        if len(embeddings) != len(texts):
            raise ProviderError(
                f"Provider returned {len(embeddings)} embeddings for {len(texts)} texts.",
                operation="embed",
            )
        self.logging.debug("Embedded %d text(s) with model %s", len(texts), self.embed_model)
        return embeddings

    async def do_embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""
        return (await self.do_embed([text]))[0]

    async def do_chat(self, messages: list[dict], temperature: float | None = None, max_tokens: int | None = None) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages.
            temperature (float | None): Overrides the configured temperature.
            max_tokens (int | None): Overrides the configured max tokens.

        Raises:
            ProviderError: If the request fails or the reply cannot be parsed.
        """
        body = self.get_chat_payload(
            messages,
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens if max_tokens is None else max_tokens,
        )
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
            operation="complete",
        )
        return self.extract_chat_response(response.json())

    async def do_complete(
        self,
        system_prompt: str,
        history: list[dict],
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Answer user_message given a system prompt and prior conversation.

        Args:
            system_prompt (str): Instructions and retrieved context.
            history (list[dict]): Prior messages as {"role", "content"} dicts.
            user_message (str): The new question.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            *({"role": m["role"], "content": m["content"]} for m in history),
            {"role": "user", "content": user_message},
        ]
        return await self.do_chat(messages, temperature=temperature, max_tokens=max_tokens)
