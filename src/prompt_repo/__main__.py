from prompt_repo.cli import main

raise SystemExit(main())
