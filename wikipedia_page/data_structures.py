from dataclasses import dataclass, field

# --- Constants ---
SITE_HOST = "fr.wikipedia.org"
MEDIA_HOST = "upload.wikimedia.org"
ARTICLE_PATH_PREFIX = "/wiki/"
MAX_LINKS = 50
MAX_IMAGES = 20
MIN_IMAGE_DIMENSION = 100
MAX_REDIRECTS = 5
SOCKET_TIMEOUT_SECONDS = 30.0
REQUEST_DELAY_SECONDS = 1.0
UNTITLED_PLACEHOLDER = "Sans titre"
# --- End Constants ---


@dataclass(frozen=True)
class ArticleRecord:
    url: str
    title: str
    summary: str = ""
    sections: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FetchedPage:
    url: str  # final location, after redirects
    body: str


@dataclass
class ScraperConfig:
    site_host: str = SITE_HOST
    media_host: str = MEDIA_HOST
    max_links: int = MAX_LINKS
    max_images: int = MAX_IMAGES
    min_image_dimension: int = MIN_IMAGE_DIMENSION
    max_redirects: int = MAX_REDIRECTS
    timeout_seconds: float = SOCKET_TIMEOUT_SECONDS
    request_delay_seconds: float = REQUEST_DELAY_SECONDS

    @property
    def site_origin(self) -> str:
        return f"https://{self.site_host}"
