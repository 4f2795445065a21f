"""Command line interface for the automatic login tool."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .browser.playwright_session import open_session
from .core.config import AppConfig, load_configuration
from .core.dependencies import verify_dependencies
from .core.errors import AutoLoginError, ConfigurationError
from .core.report import LoginAttemptReport
from .flow import LoginFlow, load_site_store

EXIT_SUCCESS = 0
EXIT_LOGIN_FAILED = 1
EXIT_FORM_NOT_FOUND = 2
EXIT_PREREQUISITES = 3


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Automatic web login")
    parser.add_argument("-u", "--url", required=True, help="URL da página de login")
    parser.add_argument("--username", help="Usuário (padrão: LOGIN_USERNAME)")
    parser.add_argument("--password", help="Senha (padrão: LOGIN_PASSWORD)")
    parser.add_argument("--domain", help="Domínio/tenant; use 'none' para ignorar (padrão: LOGIN_DOMAIN)")
    parser.add_argument("--headless", action="store_true", default=None, help="Executa o navegador sem interface")
    parser.add_argument("--report", default="login_report.json", help="Arquivo de saída do relatório")
    parser.add_argument("--screenshot-dir", help="Diretório para capturas de tela em caso de falha")
    parser.add_argument("--site-config", help="Arquivo JSON com seletores por site")
    parser.add_argument("-v", "--verbose", action="store_true", help="Exibe logs detalhados")
    return parser.parse_args(argv)


INSTALL_HINTS = {
    "playwright": "pip install playwright",
    "chromium": "playwright install chromium",
}


def print_dependency_status() -> bool:
    """Reports the browser prerequisites; False when any is missing."""

    ready = True
    for name, ok in verify_dependencies().items():
        if ok:
            print(f"[+] {name} disponível")
            continue
        ready = False
        print(f"[!] {name} ausente; execute '{INSTALL_HINTS.get(name, name)}'")
    return ready


def exit_code_for(report: LoginAttemptReport) -> int:
    if report.outcome == "success":
        return EXIT_SUCCESS
    if report.outcome == "form_not_found":
        return EXIT_FORM_NOT_FOUND
    return EXIT_LOGIN_FAILED


def print_summary(report: LoginAttemptReport) -> None:
    if report.strategy:
        print(f"[+] Formulário detectado pela estratégia '{report.strategy}'")
        for role, description in sorted(report.detected_fields.items()):
            print(f" - {role}: {description}")
    if report.entry:
        print(f"[*] Preenchimento: {report.entry['state']} (envio: {report.entry.get('submit_method') or '-'})")
    if report.verification:
        for probe in report.verification.get("probes", []):
            print(f" - {probe['probe']}: {probe['outcome']} ({probe['confidence']})")
    marker = "+" if report.succeeded else "!"
    print(f"[{marker}] Resultado: {report.outcome}")
    if report.screenshot:
        print(f"[*] Captura de tela salva em {report.screenshot}")


def run_login(config: AppConfig) -> LoginAttemptReport:
    site_store = load_site_store(config)
    with open_session(config.headless, config.browser_timeout_ms) as session:
        session.navigate(config.target_url)
        return LoginFlow(config, site_store=site_store).run(session)


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_configuration(
            args.url,
            args.report,
            username=args.username,
            password=args.password,
            domain=args.domain,
            headless=args.headless,
            screenshot_dir=args.screenshot_dir,
            site_config=args.site_config,
        )
    except ConfigurationError as exc:
        print(f"[!] Configuração inválida: {exc}")
        return EXIT_PREREQUISITES

    if not config.has_credentials:
        print("[!] Informe usuário e senha (--username/--password ou LOGIN_USERNAME/LOGIN_PASSWORD).")
        return EXIT_PREREQUISITES

    print("[*] Verificando dependências...")
    if not print_dependency_status():
        return EXIT_PREREQUISITES

    print(f"\n=== Login em {config.target_url} ===")
    try:
        report = run_login(config)
    except ConfigurationError as exc:
        print(f"[!] Configuração inválida: {exc}")
        return EXIT_PREREQUISITES
    except AutoLoginError as exc:
        print(f"[!] Falha no navegador: {exc}")
        return EXIT_LOGIN_FAILED

    report.save(config.report_path)
    print_summary(report)
    print(f"[+] Relatório salvo em {config.report_path}")
    return exit_code_for(report)


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
