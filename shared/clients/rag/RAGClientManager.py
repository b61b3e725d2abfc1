from shared.helper.HelperConfig import HelperConfig
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager:
    """
    Instantiates the single vector backend selected by RAG_ENGINE.

    The choice is made once here; callers only ever see RAGClientInterface.
    """

    def __init__(self, helper_config: HelperConfig, embed_client: LLMClientInterface):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the vector backend from ENV configuration.

        Returns:
            str: Capitalised engine name, e.g. "Pinecone" or "Chroma".
        """
        engine = self.helper_config.get_string_val("RAG_ENGINE", default="pinecone")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> RAGClientInterface:
        """
        Imports shared.clients.rag.{engine}.RAGClient{Engine} and instantiates it.

        Raises:
            ValueError: If the engine is unsupported.
        """
        engine = self._get_engine_from_env()
        class_name = f"RAGClient{engine}"
        try:
            module = __import__(
                f"shared.clients.rag.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported RAG engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config, embed_client=self._embed_client)
        self.logging.debug("Instantiated RAG client for engine: %s", engine)
        return client

    def get_client(self) -> RAGClientInterface:
        return self.client
