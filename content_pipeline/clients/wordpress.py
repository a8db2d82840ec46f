import requests
from django.conf import settings

from content_pipeline.exceptions import PipelineConfigurationError
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

WORDPRESS_TIMEOUT_SECONDS = 20


class WordPressClient:
    """
    Minimal WordPress REST client authenticated with an application password.

    Only what publishing needs: create posts, find-or-create categories and
    tags, and list existing term names. Media uploads are not supported; image
    prompts travel as post meta.
    """

    def __init__(self, api_url=None, username=None, app_password=None):
        self.api_url = (api_url if api_url is not None else settings.WORDPRESS_API_URL).rstrip("/")
        self.username = username if username is not None else settings.WORDPRESS_USERNAME
        self.app_password = (
            app_password if app_password is not None else settings.WORDPRESS_APP_PASSWORD
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.username and self.app_password)

    def _check_configured(self):
        if not self.api_url:
            raise PipelineConfigurationError("WORDPRESS_API_URL is not configured")
        if not self.username or not self.app_password:
            raise PipelineConfigurationError(
                "WORDPRESS_USERNAME and WORDPRESS_APP_PASSWORD must be configured"
            )

    def _url(self, path):
        return f"{self.api_url}/wp-json/wp/v2/{path.lstrip('/')}"

    def _get(self, path, params=None):
        self._check_configured()
        response = requests.get(
            self._url(path),
            params=params,
            auth=(self.username, self.app_password),
            timeout=WORDPRESS_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()

    def _post(self, path, payload):
        self._check_configured()
        response = requests.post(
            self._url(path),
            json=payload,
            auth=(self.username, self.app_password),
            timeout=WORDPRESS_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()

    def create_post(self, payload: dict) -> dict:
        logger.info(
            "[WordPressClient] Creating post",
            title=payload.get("title"),
            status=payload.get("status"),
            date=payload.get("date"),
            slug=payload.get("slug"),
        )
        return self._post("posts", payload)

    def _ensure_term(self, taxonomy, name):
        if not name:
            raise ValueError(f"{taxonomy} name is required")

        candidates = self._get(taxonomy, params={"search": name, "per_page": 10})
        for candidate in candidates:
            candidate_name = candidate.get("name")
            if isinstance(candidate_name, str) and candidate_name.lower() == name.lower():
                if candidate.get("id"):
                    return candidate["id"]

        created_term = self._post(taxonomy, {"name": name})
        logger.info("[WordPressClient] Created term", taxonomy=taxonomy, name=name)
        return created_term["id"]

    def ensure_category(self, name: str) -> int:
        return self._ensure_term("categories", name)

    def ensure_tag(self, name: str) -> int:
        return self._ensure_term("tags", name)

    def list_term_names(self, taxonomy: str, per_page: int = 100) -> list[str]:
        terms = self._get(taxonomy, params={"per_page": per_page})
        return [term["name"] for term in terms if term.get("name")]
