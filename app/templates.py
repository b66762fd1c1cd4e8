"""
HTML pages served by the demo.

Plain server-rendered HTML with no client-side JavaScript. Every dynamic
value is HTML-escaped before it is interpolated.
"""

from html import escape
from typing import Optional

TAILWIND_CDN = "https://cdn.tailwindcss.com"

DEFAULT_EMAIL_PLACEHOLDER = "john.doe@example.com"

_INDEX_TEMPLATE = """<!doctype html>
<html>
  <head>
    <title>SAML Demo App using SSOReady</title>
    <script src="{tailwind}"></script>
  </head>
  <body>
    <main class="grid min-h-screen place-items-center py-32 px-8">
      <div class="text-center">
        <h1 class="mt-4 text-balance text-5xl font-semibold tracking-tight text-gray-900 sm:text-7xl">
          Hello, {greeting}!
        </h1>
        <p class="mt-6 text-pretty text-lg font-medium text-gray-500 sm:text-xl/8">
          This is a SAML demo app, built using SSOReady.
        </p>

        <form method="get" action="/saml-redirect" class="mt-10 max-w-lg mx-auto">
          <div class="flex gap-x-4 items-center">
            <label for="email-address" class="sr-only">Email address</label>
            <input id="email-address" name="email" class="min-w-0 flex-auto rounded-md border-0 px-3.5 py-2 text-gray-900 shadow-sm ring-1 ring-inset ring-gray-300 placeholder:text-gray-400 focus:ring-2 focus:ring-inset focus:ring-indigo-600 sm:text-sm sm:leading-6" value="{placeholder}" placeholder="{placeholder}">
            <button type="submit" class="flex-none rounded-md bg-indigo-600 px-3.5 py-2.5 text-sm font-semibold text-white shadow-sm hover:bg-indigo-500">
              Log in with SAML
            </button>
            <a href="/logout" class="px-3.5 py-2.5 text-sm font-semibold text-gray-900">
              Sign out
            </a>
          </div>
          <p class="mt-4 text-sm leading-6 text-gray-900">
            (Try any @example.com or @example.org email address.)
          </p>
        </form>
      </div>
    </main>
  </body>
</html>
"""

_ERROR_TEMPLATE = """<!doctype html>
<html>
  <head>
    <title>Sign-in failed - SAML Demo App using SSOReady</title>
    <script src="{tailwind}"></script>
  </head>
  <body>
    <main class="grid min-h-screen place-items-center py-32 px-8">
      <div class="text-center">
        <p class="text-base font-semibold text-indigo-600">{status_code}</p>
        <h1 class="mt-4 text-balance text-4xl font-semibold tracking-tight text-gray-900">
          {message}
        </h1>
        <p class="mt-6 text-sm text-gray-500">Error code: {error_code}</p>
        <a href="/" class="mt-10 inline-block rounded-md bg-indigo-600 px-3.5 py-2.5 text-sm font-semibold text-white">
          Back to the start page
        </a>
      </div>
    </main>
  </body>
</html>
"""


def render_index(email: Optional[str] = None) -> str:
    """Render the landing page for the given identity (None when logged out)."""
    greeting = escape(email) if email else "logged-out user"
    return _INDEX_TEMPLATE.format(
        tailwind=TAILWIND_CDN,
        greeting=greeting,
        placeholder=DEFAULT_EMAIL_PLACEHOLDER,
    )


def render_error(status_code: int, message: str, error_code: str) -> str:
    """Render the failure page shown to browsers."""
    return _ERROR_TEMPLATE.format(
        tailwind=TAILWIND_CDN,
        status_code=status_code,
        message=escape(message),
        error_code=escape(error_code),
    )
