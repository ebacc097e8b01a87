"""
httpmux CLI commands.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from httpmux.config import get_config
from httpmux.cookies import COOKIE_NAME, COOKIE_VALUE, parse_cookie_header
from httpmux.exceptions import HTTPRequestError
from httpmux.logging_config import ErrorTracker, configure_logging
from httpmux.options import AuthScheme, Option
from httpmux.parallel import submit_all
from httpmux.request import Request


def _parse_pairs(values: tuple[str, ...]) -> dict[str, str]:
    """Parse 'name=value' arguments."""
    pairs = {}
    for item in values:
        if "=" in item:
            name, value = item.split("=", 1)
            pairs[name] = value
    return pairs


def _build_options(
    timeout: int | None,
    connect_timeout: int | None,
    insecure: bool | None,
) -> dict:
    config = get_config()
    options = config.to_options()
    if timeout is not None:
        options[Option.TIMEOUT_MS] = timeout
    if connect_timeout is not None:
        options[Option.CONNECT_TIMEOUT_MS] = connect_timeout
    if insecure is not None:
        options[Option.VERIFY_PEER] = not insecure
        options[Option.VERIFY_HOST] = not insecure
    return options


def _status_color(code: int) -> str:
    if 200 <= code < 300:
        return "green"
    elif 300 <= code < 400:
        return "yellow"
    elif 400 <= code < 500:
        return "red"
    return "red bold"


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this rotating file")
def cli(debug: bool, log_file: str | None):
    """HTTP request engine: single and parallel requests."""
    configure_logging(debug=debug, log_file=log_file)


@cli.command("request")
@click.argument("url")
@click.option("-X", "--method", default="GET", help="HTTP method (GET, POST, PUT, DELETE, etc.)")
@click.option("-H", "--header", multiple=True, help="Headers in 'Name: Value' format")
@click.option("-d", "--data", help="Raw request body")
@click.option("-F", "--form", multiple=True, help="Form field in 'name=value' format")
@click.option("--multipart", is_flag=True, help="Send form fields as multipart/form-data")
@click.option("-p", "--param", multiple=True, help="Query params in 'name=value' format")
@click.option("-u", "--user", help="Credentials in 'username:password' format")
@click.option("--basic", "auth_scheme", flag_value=AuthScheme.BASIC.value, help="Use Basic auth")
@click.option("--digest", "auth_scheme", flag_value=AuthScheme.DIGEST.value, help="Use Digest auth")
@click.option("-t", "--timeout", type=int, help="Total timeout in milliseconds")
@click.option("--connect-timeout", type=int, help="Connect timeout in milliseconds")
@click.option("-k", "--insecure/--verify", default=None, help="Disable/enable TLS verification")
@click.option("-L", "--follow/--no-follow", default=True, help="Follow redirects")
@click.option("-b", "--cookie-jar", help="Cookie file to read from and write to")
@click.option("--strict/--no-strict", default=False, help="Fail on a non-2xx status")
@click.option("-v", "--verbose", is_flag=True, help="Show response headers")
@click.option("-o", "--output", help="Save response body to file")
def request_cmd(url: str, method: str, header: tuple, data: str | None, form: tuple,
                multipart: bool, param: tuple, user: str | None, auth_scheme: str | None,
                timeout: int | None, connect_timeout: int | None, insecure: bool | None,
                follow: bool, cookie_jar: str | None, strict: bool, verbose: bool,
                output: str | None):
    """Make an HTTP request to a URL.

    Examples:
        httpmux request https://api.example.com/users
        httpmux request https://api.example.com/users -X POST -F name=test
        httpmux request https://api.example.com/upload -F file=data --multipart
        httpmux request https://api.example.com/auth -u "user:pass" --basic
    """
    console = Console()
    config = get_config()

    req = (Request(url, method.upper(), headers=list(header))
           .set_options(_build_options(timeout, connect_timeout, insecure))
           .add_option(Option.FOLLOW_REDIRECTS, follow)
           .set_user_agent(config.user_agent)
           .add_query_data(_parse_pairs(param))
           .set_cookie_jar(cookie_jar))

    fields = _parse_pairs(form)
    if fields and multipart:
        req.set_multipart_body(fields)
    elif fields:
        req.set_post_body(fields)
    elif data is not None:
        req.set_post_body(data)

    if user and ":" in user:
        name, password = user.split(":", 1)
        req.set_credentials(name, password, AuthScheme(auth_scheme or AuthScheme.ANY_SAFE.value))

    try:
        req.submit(fail_if_not_2xx=strict)
    except HTTPRequestError as e:
        console.print(f"[red]Error ({e.kind.value}):[/red] {escape(e.message)}")
        raise SystemExit(1)

    color = _status_color(req.status_code)
    elapsed_ms = req.info.get("total_time", 0.0) * 1000
    console.print(f"[{color}]{req.status_code}[/{color}] {req.info.get('url')} ({elapsed_ms:.0f}ms)")

    redirects = req.info.get("redirect_chain") or []
    if redirects and verbose:
        console.print("[yellow]Redirect chain:[/yellow]")
        for i, hop in enumerate(redirects):
            console.print(f"  {i+1}. {hop}")

    if verbose:
        console.print("\n[cyan]Response Headers:[/cyan]")
        for h_name, h_value in req.response_headers.items():
            values = h_value if isinstance(h_value, list) else [h_value]
            for value in values:
                console.print(f"  [dim]{h_name}:[/dim] {value}")

    if output:
        with open(output, "wb") as f:
            f.write(req.response_body)
        console.print(f"[green]Response saved to {output}[/green]")
    elif req.response_body:
        console.print()
        body = req.response_text
        if len(body) > 2000 and not verbose:
            console.print(body[:2000], markup=False)
            console.print(f"\n[dim]... ({len(body) - 2000} more bytes)[/dim]")
        else:
            console.print(body, markup=False)


@cli.command("batch")
@click.argument("urls", nargs=-1, required=True)
@click.option("-X", "--method", default="GET", help="HTTP method for every request")
@click.option("-t", "--timeout", type=int, help="Total timeout in milliseconds")
@click.option("--connect-timeout", type=int, help="Connect timeout in milliseconds")
@click.option("-k", "--insecure/--verify", default=None, help="Disable/enable TLS verification")
@click.option("--strict/--no-strict", default=True, help="Count a non-2xx status as a failure")
def batch_cmd(urls: tuple[str, ...], method: str, timeout: int | None,
              connect_timeout: int | None, insecure: bool | None, strict: bool):
    """Request several URLs in parallel.

    Examples:
        httpmux batch https://example.com https://example.org
        httpmux batch http://10.0.0.1 http://10.0.0.2 -t 1500 --no-strict
    """
    console = Console()
    config = get_config()
    options = _build_options(timeout, connect_timeout, insecure)

    requests = [
        Request(url, method.upper(), options=options)
        .set_user_agent(config.user_agent)
        .fail_if_not_2xx(strict)
        for url in urls
    ]

    with console.status(f"[bold green]Requesting {len(requests)} URLs..."):
        try:
            submit_all(requests, select_timeout=config.select_timeout)
        except HTTPRequestError as e:
            console.print(f"[red]Error:[/red] {escape(e.message)}")
            raise SystemExit(1)

    tracker = ErrorTracker()
    table = Table(title="Batch Results")
    table.add_column("URL", style="cyan")
    table.add_column("Status")
    table.add_column("Result")
    table.add_column("Size", justify="right")
    table.add_column("Time", justify="right")

    for req in requests:
        elapsed_ms = req.info.get("total_time", 0.0) * 1000
        if req.error is None:
            color = _status_color(req.status_code)
            result = "[green]ok[/green]"
        else:
            color = "red"
            result = f"[red]{req.error.kind.value}[/red]"
            tracker.log_error(req.error.kind.value, req.error.message, context={"url": req.url})

        status = str(req.status_code) if req.status_code else "-"
        table.add_row(
            req.url,
            f"[{color}]{status}[/{color}]",
            result,
            f"{len(req.response_body):,}",
            f"{elapsed_ms:.0f}ms",
        )

    console.print(table)

    counts = tracker.get_error_counts()
    if counts:
        summary = ", ".join(f"{kind}: {count}" for kind, count in sorted(counts.items()))
        console.print(f"\n[red]{sum(counts.values())} of {len(requests)} failed[/red] ({summary})")
        raise SystemExit(1)
    console.print(f"\n[green]All {len(requests)} requests succeeded[/green]")


@cli.command("cookies")
@click.argument("header")
def cookies_cmd(header: str):
    """Parse a Set-Cookie header into its cookies.

    Examples:
        httpmux cookies 'sid=abc; Path=/; Secure, theme="dark,blue"; Max-Age=60'
    """
    console = Console()
    cookies = parse_cookie_header(header)
    if not cookies:
        console.print("[yellow]No cookies found[/yellow]")
        return

    table = Table(title="Cookies")
    table.add_column("Name", style="cyan")
    table.add_column("Value")
    table.add_column("Attributes", style="dim")

    for cookie in cookies:
        attrs = []
        for name, value in cookie.items():
            if name in (COOKIE_NAME, COOKIE_VALUE):
                continue
            attrs.append(name if value is True else f"{name}={value}")
        table.add_row(str(cookie[COOKIE_NAME]), str(cookie[COOKIE_VALUE]), "; ".join(attrs))

    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
