from kpack.cli import main

raise SystemExit(main())
