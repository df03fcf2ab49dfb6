from taperecorder.cli import app

app(prog_name="taperecorder")
