"""
Terminal front end for the story reader.

Drives a ``ReaderSession`` against a running Story Reader server:

    story-reader --server http://localhost:3000 read es 3

Inside a story type ``help`` for the commands. Saving stories and words
needs a signed-in account: pass the browser's ``session`` cookie with
``--cookie`` (or STORY_READER_COOKIE).

Configuration:
    STORY_READER_URL: server base URL (default http://localhost:3000)
    STORY_READER_COOKIE: value of the signed-in ``session`` cookie
    STORY_READER_PLAYER: command that plays an MP3 file, e.g. "mpg123 -q"
"""
from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Iterable, Optional

import click

from .api_client import ApiError, ReaderApiClient
from .playback import AudioPlayer, PlaybackPhase
from .quiz_flow import QuizPhase, missing_answers
from .session import ReaderSession
from .state import Screen

DEFAULT_SERVER = 'http://localhost:3000'

HELP = """Commands:
  gloss WORD      show the English meaning of a word
  listen          play or pause the story audio
  quiz            take the comprehension quiz
  retake          take a new quiz on the same story
  save            save this story to your account
  save-word WORD  add a word to your vocabulary
  account         show sign-in status and points
  story           print the story again
  new LANG GRADE  read another story
  quit            leave the reader"""


class CommandPlayer(AudioPlayer):
    """Plays MP3 files with an external command. Pausing stops the process."""

    def __init__(self, command: str):
        self.command = shlex.split(command)
        self._process: Optional[subprocess.Popen] = None

    def play(self, resource: str) -> None:
        self.stop()
        try:
            self._process = subprocess.Popen(
                self.command + [resource], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
            )
        except OSError as error:
            click.secho(f"Unable to launch audio player for '{resource}': {error}", fg='yellow', err=True)

    def pause(self) -> None:
        self.stop()

    def stop(self) -> None:
        if self._process is not None and self._process.poll() is None:
            self._process.terminate()
        self._process = None


class TerminalReader:
    """Reads commands from the terminal and renders the session state."""

    def __init__(self, session: ReaderSession):
        self.session = session
        self._reported = None

    def report(self) -> bool:
        """Echo the error banner if it has not been shown yet."""
        banner = self.session.state.error
        if banner is None or banner is self._reported:
            return False
        self._reported = banner
        click.secho(banner.message, fg='red', err=True)
        return True

    def open_story(self, language: str, grade_level: str) -> bool:
        click.echo('Generating your story...')
        state = self.session.generate_story(language, grade_level)
        if state.screen is not Screen.STORY:
            self.report()
            return False
        self.print_story()
        return True

    def print_story(self) -> None:
        state = self.session.state
        click.secho(f'[{state.language}, grade {state.grade_level}]', bold=True)
        for paragraph in self.session.paragraphs():
            click.echo(''.join(token.text for token in paragraph))
            click.echo()

    def gloss(self, word: str) -> None:
        translation = self.session.hover(word)
        if translation is None:
            click.secho(f'No translation for "{word}".', fg='yellow')
        else:
            click.echo(f'{word}: {translation}')
        self.session.leave()

    def listen(self) -> None:
        state = self.session.toggle_audio()
        if self.report():
            return
        if state.audio.phase is PlaybackPhase.PLAYING:
            if self.session.playback.player is None:
                click.echo(f'Audio saved to {state.audio.resource}')
            else:
                click.echo('Playing. Type "listen" to pause.')
        elif state.audio.phase is PlaybackPhase.PAUSED:
            click.echo('Paused. Type "listen" to play again.')

    def ask(self, indexes: Iterable[int]) -> None:
        questions = self.session.state.quiz.questions
        for i in indexes:
            question = questions[i]
            label = f'{i + 1}. {question.question}'
            if question.type.options:
                answer = click.prompt(label, type=click.Choice(question.type.options, case_sensitive=False))
            else:
                answer = click.prompt(label)
            self.session.record_answer(i, answer)

    def quiz(self, retake: bool = False) -> None:
        state = self.session.retake_quiz() if retake else self.session.show_quiz()
        if state.quiz.phase is QuizPhase.RESULTS:
            self.print_results()
            return
        if state.quiz.phase is not QuizPhase.READY:
            self.report()
            return

        self.ask(range(len(state.quiz.questions)))
        state = self.session.submit_quiz()
        while state.quiz.phase is QuizPhase.READY:
            self.report()
            missing = missing_answers(state.quiz)
            if missing:
                self.ask(missing)
            elif not click.confirm('Submit again?', default=True):
                return
            state = self.session.submit_quiz()
        self.print_results()

    def print_results(self) -> None:
        results = self.session.state.quiz.results
        click.secho(f'{results.fraction}  {results.message}', bold=True)
        for i, answer in enumerate(results.results, 1):
            mark = click.style('✓', fg='green') if answer.correct else click.style('✗', fg='red')
            line = f'{mark} {i}. {answer.user_answer}'
            if not answer.correct:
                line += f' (correct answer: {answer.correct_answer})'
            click.echo(line)
            if answer.feedback:
                click.echo(f'   {answer.feedback}')
        if results.total_points is not None:
            click.echo(f'+{results.points_earned} points ({results.total_points} total)')

    def save_story(self) -> None:
        saved = self.session.save_story()
        if saved is None:
            self.report()
        else:
            click.echo(f'Saved "{saved.get("title")}".')

    def save_word(self, word: str) -> None:
        saved = self.session.save_word(word)
        if saved is None:
            self.report()
        else:
            click.echo(f'Added "{saved.get("word")}" to your vocabulary.')

    def account(self) -> None:
        user = self.session.refresh_user().user
        if user is None:
            click.echo('Not signed in.')
        else:
            click.echo(f'{user.get("name")}: {user.get("totalPoints", 0)} points')

    def new_story(self, arg: str) -> None:
        self.session.new_story()
        parts = arg.split()
        language = parts[0] if parts else click.prompt('Language')
        grade_level = parts[1] if len(parts) > 1 else click.prompt('Grade level')
        self.open_story(language, grade_level)

    def handle(self, line: str) -> bool:
        """Run one command; False once the user quits."""
        verb, _, arg = line.strip().partition(' ')
        verb, arg = verb.lower(), arg.strip()
        if verb in ('quit', 'exit'):
            return False
        if verb == 'new':
            self.new_story(arg)
        elif verb == 'account':
            self.account()
        elif self.session.state.story is None:
            click.echo('No story yet. Type "new LANG GRADE" to start one.')
        elif verb == 'gloss' and arg:
            self.gloss(arg)
        elif verb == 'listen':
            self.listen()
        elif verb in ('quiz', 'retake'):
            self.quiz(retake=verb == 'retake')
            self.session.back_to_story()
        elif verb == 'save':
            self.save_story()
        elif verb == 'save-word' and arg:
            self.save_word(arg)
        elif verb == 'story':
            self.print_story()
        else:
            click.echo(HELP)
        return True

    def run(self) -> None:
        while self.handle(click.prompt('reader', prompt_suffix='> ')):
            pass


@click.group()
@click.option('--server', envvar='STORY_READER_URL', default=DEFAULT_SERVER, show_default=True,
              help='Base URL of the Story Reader server.')
@click.option('--cookie', envvar='STORY_READER_COOKIE', default=None,
              help='Value of the signed-in "session" cookie.')
@click.option('--player', envvar='STORY_READER_PLAYER', default=None,
              help='Command that plays an MP3 file, e.g. "mpg123 -q".')
@click.option('--log-level', default='WARNING', show_default=True)
@click.pass_context
def cli(ctx, server, cookie, player, log_level):
    """Read graded stories from a Story Reader server."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    api = ReaderApiClient(server)
    if cookie:
        api.session.cookies.set('session', cookie)
    session = ReaderSession(api, player=CommandPlayer(player) if player else None)
    ctx.obj = session
    ctx.call_on_close(session.close)


@cli.command()
@click.pass_obj
def options(session):
    """List the languages and grade levels."""
    try:
        data = session.api.options()
    except ApiError as exc:
        raise click.ClickException(str(exc))
    click.echo('Languages:')
    for language in data.get('languages', []):
        click.echo(f'  {language["code"]}  {language["name"]}')
    click.echo('Grades:')
    for grade in data.get('grades', []):
        click.echo(f'  {grade["value"]}  {grade["label"]}')


@cli.command()
@click.argument('language')
@click.argument('grade_level')
@click.pass_obj
def read(session, language, grade_level):
    """Generate a story and read it interactively."""
    reader = TerminalReader(session)
    session.refresh_user()
    if not reader.open_story(language, grade_level):
        raise click.ClickException('No story could be generated.')
    click.echo('Type "help" for commands.')
    reader.run()


@cli.command()
@click.option('--language', default=None, help='Only words of this language.')
@click.pass_obj
def vocabulary(session, language):
    """List the words saved to your account."""
    try:
        entries = session.api.list_vocabulary(language)
    except ApiError as exc:
        raise click.ClickException(str(exc))
    if not entries:
        click.echo('No saved words.')
    for entry in entries:
        click.echo(f'{entry["word"]} ({entry["language"]}): {entry.get("translation") or "?"}')


@cli.command()
@click.pass_obj
def scores(session):
    """Show your recent quiz scores and total points."""
    try:
        data = session.api.quiz_scores()
    except ApiError as exc:
        raise click.ClickException(str(exc))
    for score in data.get('scores', []):
        click.echo(f'{score["createdAt"]}  {score["language"]} grade {score["gradeLevel"]}: '
                   f'{score["score"]}/{score["total"]} (+{score["pointsEarned"]})')
    click.echo(f'Total points: {data.get("totalPoints", 0)}')


if __name__ == '__main__':
    cli()
