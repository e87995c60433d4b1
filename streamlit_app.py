"""Entrypoint for hosted deployments that expect ``streamlit_app.py``.

Running ``streamlit run streamlit_app.py`` shows the same home screen as
``streamlit run Home.py``; the form runner is found under ``pages/``.
"""

from Home import main

if __name__ == "__main__":
    main()
