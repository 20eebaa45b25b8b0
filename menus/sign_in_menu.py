import webbrowser

import questionary

from config import check_spotify_credentials
from spotify_web import SpotifyClient, SpotifyError, SpotifyLogin
from spotify_web.permissions import parse_permissions
from utils.logger import log_error, log_info, log_success, log_warning


def show_user(user) -> None:
    """Print the signed-in user's name and avatar, like the app's main screen."""
    log_info("=" * 72)
    log_info(f"Signed in as: {user.display_name or user.id or '(unknown)'}")
    if user.avatar_url:
        log_info(f"Avatar: {user.avatar_url}")
    if user.product:
        log_info(f"Account: {user.product}")
    log_info("=" * 72)


async def sign_in(config: dict, client: SpotifyClient, login: SpotifyLogin) -> bool:
    """Run the implicit grant login where the user pastes the redirect URL back."""
    creds = check_spotify_credentials(config)
    if not creds["ok"]:
        log_warning(creds["message"])
        return False

    try:
        permissions = parse_permissions(creds["scopes"])
    except ValueError as e:
        log_error(f"Invalid spotify_scopes in config.json: {e}")
        return False

    outcome = {}

    def on_login(success, error):
        outcome["success"] = success
        outcome["error"] = error

    auth_url = login.login(creds["client_id"], creds["redirect_uri"], permissions, on_login)

    log_info("")
    log_info("1) Open the authorize URL and sign in to Spotify.")
    log_info("2) Spotify will redirect to your redirect URI.")
    log_info("3) Copy the FULL redirect URL (including #access_token=...) and paste it here.")
    log_info(f"Authorize URL:\n{auth_url}")

    if config.get("open_browser", True) and await questionary.confirm(
        "Open the authorize URL in your default browser?", default=True
    ).ask_async():
        webbrowser.open(auth_url)

    pasted = (await questionary.text("Paste the full redirect URL:").ask_async() or "").strip()
    if not pasted:
        log_warning("No redirect URL provided. Cancelling sign in.")
        return False

    if not login.is_redirect(pasted):
        log_warning("That URL does not use the configured redirect URI scheme.")
        return False

    if not login.handle_redirect(pasted):
        log_error("Could not find access_token or error in the pasted URL.")
        return False

    if not outcome.get("success"):
        log_error(f"Login Failed: {outcome.get('error')}")
        return False

    try:
        user = await client.fetch_current_user()
    except SpotifyError as e:
        log_error(f"Could not load your Spotify profile: {e}")
        return False

    log_success("Spotify sign in successful.")
    show_user(user)
    return True


async def show_playlists(client: SpotifyClient) -> None:
    if client.current_user is None:
        log_warning("Sign in first.")
        return

    try:
        playlists = await client.fetch_playlists(client.current_user)
    except SpotifyError as e:
        log_error(f"Could not load playlists: {e}")
        return

    if not playlists:
        log_info("No playlists found for this account.")
        return

    for p in playlists:
        log_info(f"  {p.name or '(unnamed)'}  [{p.id}]")


async def sign_in_menu(config: dict, client: SpotifyClient) -> None:
    login = SpotifyLogin(client, config=config)

    while True:
        choice = await questionary.select(
            "🎵 Spotify — What would you like to do?",
            choices=[
                "Sign in with Spotify",
                "Show my playlists",
                "Exit",
            ],
        ).ask_async()

        if choice == "Sign in with Spotify":
            await sign_in(config, client, login)

        elif choice == "Show my playlists":
            await show_playlists(client)

        elif choice == "Exit" or choice is None:
            log_info("Exiting program...")
            break
