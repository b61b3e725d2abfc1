from abc import ABC, abstractmethod

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData
from typing import Any

from shared.errors.errors import AppError
from shared.models.config import EnvConfig
from shared.helper.HelperConfig import HelperConfig


class ClientInterface(ABC):
    """Base class of every HTTP-backed collaborator (provider, vector backends).

    Subclasses declare their client type ("llm", "rag") and engine ("openai",
    "pinecone", ...); configuration keys are resolved as
    "{CLIENT_TYPE}_{ENGINE}_{KEY}".
    """

    # raised when the backend cannot be reached at all
    unreachable_error: type[AppError] = AppError
    # raised on a non-2xx reply when raise_on_error is set
    request_error: type[AppError] = AppError

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every required configuration value once.

        Raises:
            ValueError: If a required value is missing or cannot be parsed.
        """
        for config in self._get_required_config():
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the type of the client in lowercase. E.g. "rag"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client in lowercase. E.g. "pinecone"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all configuration keys the client reads.

        Returns:
            list[EnvConfig]: Keys without the "{CLIENT_TYPE}_{ENGINE}_" prefix.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full configuration key name. E.g. "RAG_PINECONE_API_KEY"
        """
        key_prefix = f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}"
        return f"{key_prefix}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of a client-scoped configuration key.

        Args:
            raw_key (str): The key without prefix, e.g. "API_KEY"
            default (Any): Value returned if the variable is unset; None means required
            val_type (str): "string", "number", "bool" or "list"
        """
        key = self._get_config_key_name(raw_key)
        if val_type == "string":
            return self._helper_config.get_string_val(key, default=default)
        elif val_type == "number":
            return self._helper_config.get_number_val(key, default=default)
        elif val_type == "bool":
            return self._helper_config.get_bool_val(key, default=default)
        elif val_type == "list":
            return self._helper_config.get_list_val(key, default=default)
        else:
            raise ValueError(f"Unsupported config value type '{val_type}' for env key '{raw_key}' in {self.get_client_type().upper()} client '{self.get_engine_name()}'.")

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication headers for the backend, empty if no key is set.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL requests are sent to unless a call overrides it.

        Raises:
            AppError: If the base URL is not known yet (e.g. before initialization).
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Returns the endpoint path for healthcheck requests (e.g. "/models").
        """
        pass

    ##########################################
    ################ ERRORS ##################
    ##########################################

    @staticmethod
    def extract_error_message(response: httpx.Response) -> str:
        """Pull the backend's own error message out of a failed response.

        Handles {"error": {"message": ...}}, {"error": "..."} and
        {"message": ...} bodies and falls back to the raw text.
        """
        try:
            body = response.json()
        except ValueError:
            return response.text[:300] or response.reason_phrase
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
            if body.get("message"):
                return str(body["message"])
        return response.text[:300]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Check if the backend is healthy by sending a test request."""
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialise the HTTP client.

        Args:
            transport: Optional transport replacing the network one (used by tests).
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        json: dict | list | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        base_url: str | None = None,
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
        operation: str | None = None,
    ) -> httpx.Response:
        """Send an HTTP request to the backend.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, …).
            content: Raw bytes / string body.
            data: Form-encoded body.
            json: JSON-serialisable body (sets Content-Type automatically).
            params: URL query parameters.
            endpoint: Path appended to the base URL (leading slash optional).
            base_url: Overrides _get_base_url() for this call.
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise request_error on a non-2xx status.
            operation: Name used in error messages and logs.

        Returns:
            The raw httpx.Response.

        Raises:
            AppError: unreachable_error if the client is not booted or the
                backend cannot be reached; request_error on a non-2xx reply
                when raise_on_error is True.
        """
        operation = operation or f"{self.get_engine_name()} {method} {endpoint}"
        if self._client is None:
            raise self.unreachable_error(
                f"HTTP client for '{self.get_engine_name()}' not initialised. Call boot() before making requests.",
                operation=operation,
            )

        endpoint = "/" + endpoint.strip().lstrip("/") if endpoint.strip() else ""
        root = (base_url or self._get_base_url()).rstrip("/")

        headers: dict = {}
        headers.update(self._get_auth_header())
        if additional_headers:
            headers.update(additional_headers)

        kwargs: dict = {
            "url": f"{root}{endpoint}",
            "headers": headers,
            "timeout": self.timeout,
            "params": params,
        }

        # add exactly one body argument
        if content is not None:
            kwargs["content"] = content
        elif data is not None:
            kwargs["data"] = data
        elif json is not None:
            kwargs["json"] = json

        try:
            response = await self._client.request(method, **kwargs)
        except httpx.TransportError as exc:
            self.logging.error("Request to %s failed: %s", kwargs["url"], exc)
            raise self.unreachable_error(
                f"{self.get_engine_name()} is not reachable: {exc}",
                operation=operation,
            ) from exc

        if raise_on_error and not response.is_success:
            message = self.extract_error_message(response)
            self.logging.error(
                "Request to %s failed with status %d: %s",
                kwargs["url"],
                response.status_code,
                message,
            )
            raise self.request_error(
                f"{self.get_engine_name()} request failed with status {response.status_code}: {message}",
                operation=operation,
                context={"status_code": response.status_code},
            )

        return response
