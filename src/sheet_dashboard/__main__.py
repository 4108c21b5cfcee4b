from sheet_dashboard.cli import app

app()
