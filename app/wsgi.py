from app.fms import create_app

app = create_app()
