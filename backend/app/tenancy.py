"""Tenant slug extraction from the request host."""

DEFAULT_TENANT_SLUG = "demo"

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "[::1]"})


def extract_tenant_slug(
    host: str,
    root_domain: str,
    *,
    query_slug: str | None = None,
    header_slug: str | None = None,
) -> str | None:
    """Work out which tenant a request is addressed to.

    ``school1.example.org`` gives ``school1`` and the bare root domain gives
    the demo tenant. Local hosts have no subdomain, so they read
    ``?tenant=``, then the ``X-Tenant-Slug`` header, then fall back to demo.
    Hosts outside the root domain (preview deploys, custom domains) have no
    tenant.

    Args:
        host: Value of the Host header, port included or not
        root_domain: Production apex domain
        query_slug: ``tenant`` query parameter, if any
        header_slug: ``X-Tenant-Slug`` header, if any

    Returns:
        Tenant slug or None
    """
    hostname = host if host.endswith("]") else host.rsplit(":", 1)[0]
    hostname = hostname.lower()
    if hostname in _LOCAL_HOSTS:
        return query_slug or header_slug or DEFAULT_TENANT_SLUG

    root = root_domain.lower()

    if hostname == root:
        return DEFAULT_TENANT_SLUG
    if not hostname.endswith("." + root):
        return None

    return hostname[: -(len(root) + 1)]
