import typer
from pathlib import Path
from typing import Optional
import logging
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import Settings
from .errors import ResearchCoachError
from .models import (
    ArticlePlan, ArticlePlanRequest, ExplainRequest, ResearchQuestionsRequest, TTSRequest
)
from .research_service import ResearchAssistantService
from .topic_store import TopicStore
from .workspace import LocalDraftCache, Stage3Workspace, build_slide_draft, build_stage4_request

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Typer app
app = typer.Typer(
    name="research-coach",
    help="Guide a student research project: questions, article plan, articles, slides",
    add_completion=False
)

# Initialize console for rich output
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")):
    load_dotenv()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _settings() -> Settings:
    return Settings.from_env()


def _service() -> ResearchAssistantService:
    return ResearchAssistantService.from_settings(_settings())


def _store() -> TopicStore:
    return TopicStore(_settings().data_dir)


def _workspace(topic_id: str) -> Stage3Workspace:
    settings = _settings()
    cache = LocalDraftCache(settings.data_dir / "local")
    return Stage3Workspace(TopicStore(settings.data_dir), cache, topic_id)


def _fail(e: Exception):
    if isinstance(e, ResearchCoachError):
        message = e.message
    else:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        message = str(e)
    console.print(f"[red]Error: {escape(message)}[/red]")
    raise typer.Exit(1)


def _with_spinner(description: str, call, *args):
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        progress.add_task(description, total=None)
        return call(*args)


@app.command()
def questions(
    topic: str = typer.Argument(..., help="Short topic title"),
    keywords: Optional[str] = typer.Option(None, "--keywords", "-k", help="Comma separated keywords")
):
    """Stage 1: suggest five research questions"""
    try:
        result = _with_spinner(
            "Asking for research questions...",
            _service().generate_research_questions,
            ResearchQuestionsRequest(topic=topic, keywords=keywords)
        )
    except Exception as e:
        _fail(e)

    console.print(f"\n[bold blue]Research questions for: {topic}[/bold blue]")
    for i, question in enumerate(result.questions, 1):
        console.print(f"{i}. {question}")


@app.command("new-topic")
def new_topic(
    owner: str = typer.Argument(..., help="Student id that owns the topic"),
    title: str = typer.Argument(..., help="Short topic title"),
    research_question: str = typer.Argument(..., help="Final research question"),
    keywords: Optional[str] = typer.Option(None, "--keywords", "-k", help="Comma separated keywords"),
    generate_plan: bool = typer.Option(True, "--plan/--no-plan", help="Generate the research plan and 10 titles")
):
    """Stage 2: create a topic, optionally with an AI research plan and article titles"""
    plan = None
    try:
        if generate_plan:
            response = _with_spinner(
                "Generating research plan...",
                _service().generate_article_plan,
                ArticlePlanRequest(topic=title, keywords=keywords, researchTopic=research_question)
            )
            plan = ArticlePlan(research_plan=response.research_plan, titles=response.titles)
        topic = _store().create_topic(owner, title, research_question, plan)
    except Exception as e:
        _fail(e)

    console.print(f"[green]✓ Topic saved: {topic.id}[/green]")
    if topic.article_plan:
        console.print(Panel(topic.article_plan.research_plan, title="Research plan"))
        display_titles(topic.article_titles())


@app.command()
def topics(owner: str = typer.Argument(..., help="Student id")):
    """List saved topics, newest first"""
    table = Table(title=f"Topics for {owner}")
    table.add_column("Id", style="cyan")
    table.add_column("Title", style="magenta")
    table.add_column("Research question")
    table.add_column("Articles saved", justify="right")
    table.add_column("Stage 4", justify="center")

    try:
        saved = _store().list_topics(owner)
    except Exception as e:
        _fail(e)

    for topic in saved:
        table.add_row(
            topic.id,
            topic.title,
            topic.research_topic,
            str(len(topic.stage3_data)),
            "✓" if topic.stage4_data else ""
        )

    console.print(table)


@app.command()
def article(
    topic_id: str = typer.Argument(..., help="Topic id"),
    index: int = typer.Argument(..., min=0, max=9, help="Article index (0-9)"),
    sync: bool = typer.Option(False, "--sync", help="Also save the article to the topic")
):
    """Stage 3: generate the full and simplified article for one title"""
    try:
        workspace = _workspace(topic_id)
        response = _with_spinner(
            f"Writing article {index + 1}: {workspace.title_for(index)}",
            _service().generate_article,
            workspace.article_request(index)
        )
        entry = workspace.accept_article(index, response.full, response.simple)
        if sync:
            workspace.sync(index)
    except Exception as e:
        _fail(e)

    display_entry(workspace.title_for(index), entry)
    console.print("[green]✓ Article generated and saved to topic.[/green]" if sync
                  else "[green]✓ Article generated and saved on this device.[/green]")


@app.command()
def notes(
    topic_id: str = typer.Argument(..., help="Topic id"),
    index: int = typer.Argument(..., min=0, max=9, help="Article index (0-9)"),
    summary: Optional[str] = typer.Option(None, "--summary", help="Your summary"),
    key_findings: Optional[str] = typer.Option(None, "--findings", help="Your key findings"),
    glossary: Optional[str] = typer.Option(None, "--glossary", help="Glossary lines, one term per line"),
    sync: bool = typer.Option(False, "--sync", help="Also save the notes to the topic")
):
    """Stage 3: write summary, key findings and glossary for one article"""
    edits = {"summary": summary, "keyFindings": key_findings, "glossary": glossary}
    edits = {k: v for k, v in edits.items() if v is not None}
    try:
        workspace = _workspace(topic_id)
        entry = workspace.edit(index, **edits)
        if sync:
            workspace.sync(index)
    except Exception as e:
        _fail(e)

    display_entry(workspace.title_for(index), entry, show_article=False)
    console.print("[green]Saved to topic.[/green]" if sync else "[green]Saved on this device.[/green]")


@app.command()
def show(
    topic_id: str = typer.Argument(..., help="Topic id"),
    index: int = typer.Argument(..., min=0, max=9, help="Article index (0-9)"),
    simple: bool = typer.Option(False, "--simple", help="Show the simplified version")
):
    """Show one article with the notes currently on this device"""
    try:
        workspace = _workspace(topic_id)
    except Exception as e:
        _fail(e)
    display_entry(workspace.title_for(index), workspace.load(index), simple=simple)


@app.command()
def sync(
    topic_id: str = typer.Argument(..., help="Topic id"),
    index: int = typer.Argument(..., min=0, max=9, help="Article index (0-9)")
):
    """Save the local copy of one article to the topic"""
    try:
        _workspace(topic_id).sync(index)
    except Exception as e:
        _fail(e)
    console.print(f"[green]✓ Article {index + 1} saved to topic.[/green]")


@app.command()
def explain(text: str = typer.Argument(..., help="Word, phrase or sentence")):
    """What does it mean? Simple English and Japanese"""
    try:
        result = _with_spinner("Explaining...", _service().explain, ExplainRequest(text=text))
    except Exception as e:
        _fail(e)

    console.print(f"[bold]EN:[/bold] {result.en}")
    console.print(f"[bold]JA:[/bold] {result.ja}")


@app.command()
def tts(
    text: str = typer.Argument(..., help="Text to read aloud"),
    output: Path = typer.Option(Path("speech.mp3"), "--output", "-o", help="Where to write the mp3"),
    voice: Optional[str] = typer.Option(None, "--voice", help="Voice name, e.g. en-US-JennyNeural"),
    rate: Optional[str] = typer.Option(None, "--rate", help="Speaking rate, e.g. 0% or -10%")
):
    """Synthesize speech to an mp3 file"""
    try:
        audio = _with_spinner(
            "Synthesizing speech...",
            _service().synthesize_speech,
            TTSRequest(text=text, voice=voice, rate=rate)
        )
        output.write_bytes(audio)
    except Exception as e:
        _fail(e)

    console.print(f"[green]✓ Audio saved to: {output}[/green]")


@app.command()
def stage4(
    topic_id: str = typer.Argument(..., help="Topic id"),
    draft: bool = typer.Option(False, "--draft", help="Build the draft from your notes without AI"),
    save: bool = typer.Option(False, "--save", help="Save slide idea and narration to the topic")
):
    """Stage 4: slide outline and narration"""
    try:
        store = _store()
        topic = store.get_topic(topic_id)
        if draft:
            result = build_slide_draft(topic)
        else:
            result = _with_spinner(
                "Planning slides...",
                _service().generate_stage4,
                build_stage4_request(topic)
            )
        if save:
            store.update_stage4(topic_id, result.slideIdea, result.narration)
    except Exception as e:
        _fail(e)

    console.print(Panel(result.slideIdea or "(empty)", title="Slide idea"))
    console.print(Panel(result.narration or "(empty)", title="Narration"))
    if save:
        console.print("[green]✓ Stage 4 saved to topic.[/green]")


def display_titles(titles):
    """Display the numbered article titles"""
    table = Table(title="Article titles")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Title", style="magenta")
    for i, title in enumerate(titles, 1):
        table.add_row(str(i), title)
    console.print(table)


def display_entry(title, entry, show_article=True, simple=False):
    """Display one stage 3 article and the student's notes"""
    console.print(f"\n[bold blue]{title}[/bold blue]")
    if show_article:
        text = entry.simple if simple else entry.full
        console.print(Panel(text or "(not generated yet)", title="Simplified" if simple else "Full"))
    console.print(f"[bold]Summary:[/bold] {entry.summary or '-'}")
    console.print(f"[bold]Key findings:[/bold] {entry.keyFindings or '-'}")
    console.print(f"[bold]Glossary:[/bold] {entry.glossary or '-'}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind the server to"),
    port: int = typer.Option(8000, "--port", help="Port to bind the server to")
):
    """Start the FastAPI server"""

    console.print(f"[green]Starting server on {host}:{port}[/green]")

    import uvicorn
    uvicorn.run("src.research_coach.api:app", host=host, port=port, reload=True)


if __name__ == "__main__":
    app()
