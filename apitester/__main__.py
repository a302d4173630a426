from apitester.cli import app

app(prog_name="apitester")
