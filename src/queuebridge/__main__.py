from queuebridge.cli.main import app

app()
