"""Main module for the content engine CLI"""

import asyncio
import logging
from typing import Dict, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .clients.llm_gateway import LLMGateway
from .clients.openrouter_client import OpenRouterClient
from .config import ConfigLoader
from .errors import ConfigurationError, ContentEngineError
from .models.config_models import EngineConfig
from .models.scope_models import EventType, GeneratedContent, StreamingEvent
from .services.calculation_engine import CalculationEngine
from .services.content_validator import ContentValidator
from .services.orchestrator import ResearchOrchestrator
from .services.question_generator import QuestionGenerator
from .services.research_engine import ResearchEngine
from .services.service_generator import ServiceGenerator
from .utils.report_utils import save_scope


def create_orchestrator(config: Optional[EngineConfig] = None,
                        gateway: Optional[LLMGateway] = None) -> ResearchOrchestrator:
    """Create and wire the orchestrator and its components"""
    if config is None:
        config = ConfigLoader.load_config()

    if gateway is None:
        llm_client = OpenRouterClient(
            api_key=config.api_key,
            base_url=config.base_url,
            site_url=config.site_url,
            site_name=config.site_name,
            timeout=config.service_timeout,
        )
        gateway = LLMGateway(llm_client, config)

    validator = ContentValidator()
    return ResearchOrchestrator(
        research_engine=ResearchEngine(gateway, config, validator=validator),
        service_generator=ServiceGenerator(gateway, config, validator=validator),
        question_generator=QuestionGenerator(gateway, config, validator=validator),
        calculation_engine=CalculationEngine(),
        validator=validator,
        config=config,
    )


def generate_scope(orchestrator: ResearchOrchestrator, user_request: str, console: Console,
                   loop: asyncio.AbstractEventLoop) -> GeneratedContent:
    """Run the pipeline behind a spinner"""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        task = progress.add_task("[cyan]Researching...", total=None)

        def on_progress(event: StreamingEvent) -> None:
            if event.type is EventType.STEP:
                progress.update(task, description=f"[cyan]{event.step_id.capitalize()} ({event.status.value})...")
            elif event.type is EventType.PROGRESS and event.sources is not None:
                progress.update(task, description=f"[cyan]Found {len(event.sources)} sources...")

        try:
            return loop.run_until_complete(orchestrator.generate_content(user_request, on_progress=on_progress))
        finally:
            progress.remove_task(task)


def print_services(content: GeneratedContent, console: Console) -> None:
    table = Table(title=f"Scope of Work: {content.technology}")
    table.add_column("Phase", style="magenta")
    table.add_column("Service", style="cyan")
    table.add_column("Subservices", justify="right")
    table.add_column("Hours", justify="right", style="green")
    for service in content.services:
        table.add_row(service.phase, service.name, str(len(service.subservices)), f"{service.hours:g}")
    console.print(table)
    console.print(f"[bold]Total estimated hours:[/bold] [green]{content.total_hours:g}[/green]")


def ask_responses(content: GeneratedContent, console: Console) -> Dict[str, str]:
    """Prompt for each scoping question; blank answers keep the default"""
    responses = {}
    for question in content.questions:
        console.print(f"\n[bold]{question.text}[/bold]")
        if question.options:
            console.print(f"Options: {', '.join(question.options)}")
        answer = input(f"Answer [{question.default_value}]: ").strip()
        if answer:
            responses[question.id] = answer
    return responses


def main():
    """Main entry point for the content engine CLI"""
    console = Console()
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        orchestrator = create_orchestrator()
    except ConfigurationError as e:
        console.print(f"\n[red]Configuration Error: {str(e)}[/red]")
        console.print("[yellow]Please check your API keys in the .env file[/yellow]")
        return

    console.print("\n[bold blue]ScopeStack Content Engine[/bold blue]")
    console.print("Describe a technology project. The generated scope will include:")
    console.print("- Research sources")
    console.print("- Services and subservices with hour estimates")
    console.print("- Scoping questions and calculations")
    console.print("\nPress Ctrl+C to exit.\n")

    # The async HTTP client is bound to a single event loop
    loop = asyncio.new_event_loop()
    while True:
        try:
            user_request = input("Project description: ").strip()
            if user_request:
                content = generate_scope(orchestrator, user_request, console, loop)
                print_services(content, console)

                answer_now = input("\nAnswer the scoping questions now? (yes/no): ").strip().lower()
                if answer_now == "yes":
                    responses = ask_responses(content, console)
                    result = orchestrator.apply_responses(content.services, content.questions, responses)
                    content.calculations = result.calculations
                    content.total_hours = result.total_hours
                    print_services(content, console)

                filename = save_scope(content)
                console.print(f"\n[green]Scope generated successfully![/green]")
                console.print(f"\nSaved to: {filename}")

            console.print("\nEnter another project or press Ctrl+C to exit.\n")

        except KeyboardInterrupt:
            console.print("\n\n[yellow]Exiting Content Engine...[/yellow]")
            break
        except ContentEngineError as e:
            console.print(f"\n[red]Error: {str(e)}[/red]")
            continue
    loop.close()


if __name__ == "__main__":
    main()
