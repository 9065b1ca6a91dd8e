# inkpost/cli.py
import typer

from inkpost.db import get_session, init_db
from inkpost.errors import InkpostError
from inkpost.services import seeder
from inkpost.services.feed import trending_tags
from inkpost.services.users import register_user

app = typer.Typer(help="Inkpost CLI with subcommands")


@app.command("init-db")
def init_db_cmd():
    """Create all tables, retrying while the database starts up."""
    try:
        init_db()
    except Exception as e:
        typer.echo(f"❌ Could not create schema: {e}", err=True)
        raise typer.Exit(1)
    typer.echo("✓ Schema ready")


@app.command("seed")
def seed_cmd(
    users: int = typer.Option(50, help="Number of users", min=1),
    posts: int = typer.Option(300, help="Number of posts", min=0),
    tags: int = typer.Option(25, help="Number of unique tags", min=1),
):
    """Populate the database with demo data."""
    # Set deterministic seeds for reproducible data
    seeder.seed_random_generators()

    with get_session() as db:
        us = seeder.make_users(db, users)
        ts = seeder.make_tags(db, tags)
        ps = seeder.make_posts(db, us, ts, posts)
        seeder.make_comments(db, ps, us, frac_with_threads=0.6)
        seeder.make_likes(db, ps, us)
        seeder.make_follows(db, us)
    typer.echo(f"Seed complete: users={users}, posts={posts}, tags={tags}")
    typer.echo(f"Every demo account uses the password '{seeder.DEMO_PASSWORD}'")


@app.command("create-user")
def create_user_cmd(
    email: str = typer.Argument(..., help="Login email"),
    name: str = typer.Argument(..., help="Display name"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Register an account from the command line."""
    try:
        with get_session() as db:
            user = register_user(db, email=email, password=password, name=name)
            user_id = user.id
    except InkpostError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Created user #{user_id} <{email}>")


@app.command("trending-tags")
def trending_tags_cmd(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of tags to show (1-100)", min=1, max=100),
):
    """List tags by number of linked posts."""
    with get_session() as db:
        rows = [(tag.name, tag.slug, count) for tag, count in trending_tags(db, limit=limit)]

    if not rows:
        typer.echo("No tags found")
        return

    typer.echo(f"\n🏷  Top {len(rows)} tags by post count:")
    typer.echo("─" * 50)
    for i, (name, slug, count) in enumerate(rows, 1):
        typer.echo(f"{i:2d}. {name:<24} /tag/{slug:<20} ({count:,} posts)")


@app.command("serve")
def serve_cmd(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("inkpost.main:app", host=host, port=port, reload=reload, log_level="info")


if __name__ == "__main__":
    app()
