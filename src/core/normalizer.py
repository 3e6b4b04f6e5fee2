import posixpath
import re
from urllib.parse import urljoin, urlparse, urlunparse

class URLNormalizer:
    def __init__(self):
        self.path_clean_regex = re.compile(r'/+')

    def normalize_url(self, url: str, base_url: str = None) -> str:
        try:
            if base_url and not url.startswith(("http://", "https://")):
                url = urljoin(base_url, url)

            p = urlparse(url)

            scheme = p.scheme.lower()
            netloc = self._normalize_netloc(p.netloc, scheme)
            path = self._normalize_path(p.path)
            params = p.params
            query = p.query
            fragment = ""

            return urlunparse((scheme, netloc, path, params, query, fragment))
        except Exception as e:
            raise ValueError(f"URL normalization failed for {url}: {e}")

    def _normalize_netloc(self, netloc: str, scheme: str) -> str:
        netloc = (netloc or "").lower()
        if not netloc:
            return netloc

        if "@" in netloc:
            userinfo, hostport = netloc.split("@", 1)
            userinfo += "@"
        else:
            userinfo, hostport = "", netloc

        host, sep, port = hostport.rpartition(":")
        if sep and port.isdigit():
            if (scheme == "http" and port == "80") or (scheme == "https" and port == "443"):
                hostport = host

        return f"{userinfo}{hostport}"

    def _normalize_path(self, path: str) -> str:
        path = path or "/"
        norm = posixpath.normpath(path)
        if path.endswith("/") and not norm.endswith("/"):
            norm += "/"
        if not norm.startswith("/"):
            norm = "/" + norm
        norm = self.path_clean_regex.sub("/", norm)
        return norm

    def base_path(self, url: str) -> str:
        """Path of a URL or relative target with query and fragment dropped."""
        return self._normalize_path(urlparse(url).path or "/")

    def path_with_query(self, url: str) -> str:
        p = urlparse(url)
        path = self._normalize_path(p.path or "/")
        return f"{path}?{p.query}" if p.query else path

    def same_origin(self, url: str, origin: str) -> bool:
        a = urlparse(self.normalize_url(url))
        b = urlparse(self.normalize_url(origin))
        return (a.scheme, a.netloc) == (b.scheme, b.netloc)

url_normalizer = URLNormalizer()
