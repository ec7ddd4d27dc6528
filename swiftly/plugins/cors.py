"""
CORS headers for every response; OPTIONS preflight answered with 204.
"""

from swiftly.context import RequestContext
from swiftly.plugins.base import Plugin


class CorsPlugin(Plugin):
    name = "cors"
    order = 2

    def on_init(self, app_ctx):
        config = app_ctx.config
        return {
            "origins": config.cors_origins_list,
            "methods": ", ".join(config.cors_methods_list),
            "headers": ", ".join(config.cors_headers_list),
            "credentials": config.cors_credentials,
            "max_age": config.cors_max_age,
        }

    def on_request(self, ctx: RequestContext, cors) -> None:
        headers = ctx.response.headers
        origin = ctx.request.headers.get("origin")

        if "*" in cors["origins"]:
            # Credentials cannot be combined with a literal "*"
            if cors["credentials"] and origin:
                headers["Access-Control-Allow-Origin"] = origin
                headers["Vary"] = "Origin"
            else:
                headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in cors["origins"]:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"

        headers["Access-Control-Allow-Methods"] = cors["methods"]
        headers["Access-Control-Allow-Headers"] = cors["headers"]
        headers["Access-Control-Expose-Headers"] = "X-Request-ID, Retry-After"
        if cors["credentials"]:
            headers["Access-Control-Allow-Credentials"] = "true"
        if cors["max_age"]:
            headers["Access-Control-Max-Age"] = str(cors["max_age"])

        if ctx.method == "OPTIONS":
            ctx.response.status_code = 204
            ctx.response.body = None
            ctx.response.sent = True
